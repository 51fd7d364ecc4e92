"""Shared helpers: validation, audit trail, permissions, JSON encoding"""
