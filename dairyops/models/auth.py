from datetime import datetime, timedelta
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from dairyops.extensions import db
from .base import BaseModel

MAX_FAILED_LOGINS = 5
LOCKOUT_MINUTES = 30


class AppUser(UserMixin, BaseModel):
    """Back-office or field user"""
    __tablename__ = 'app_users'

    ROLE_ADMIN = 'company_admin'
    ROLE_MANUFACTURER = 'manufacturer'
    ROLE_AGENT = 'delivery_agent'
    ROLES = (ROLE_ADMIN, ROLE_MANUFACTURER, ROLE_AGENT)

    STATUS_ACTIVE = 'active'
    STATUS_DISABLED = 'disabled'

    auth_uid = db.Column(db.String(128), unique=True, nullable=True)
    email = db.Column(db.String(128), unique=True, index=True)
    phone = db.Column(db.String(32))
    name = db.Column(db.String(128))
    role = db.Column(db.String(32), nullable=False, default=ROLE_AGENT, index=True)
    meta_data = db.Column('metadata', db.JSON)
    status = db.Column(db.String(16), default=STATUS_ACTIVE)
    password_hash = db.Column(db.String(256))

    failed_login_attempts = db.Column(db.Integer, default=0)
    locked_until = db.Column(db.DateTime, nullable=True)
    last_login = db.Column(db.DateTime)

    @property
    def password(self):
        raise AttributeError('password is not readable')

    @password.setter
    def password(self, password):
        self.password_hash = generate_password_hash(password)

    def verify_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def is_locked(self):
        return bool(self.locked_until and datetime.utcnow() < self.locked_until)

    def record_failed_login(self):
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= MAX_FAILED_LOGINS:
            self.locked_until = datetime.utcnow() + timedelta(minutes=LOCKOUT_MINUTES)
        db.session.commit()

    def reset_failed_attempts(self):
        self.failed_login_attempts = 0
        self.locked_until = None
        self.last_login = datetime.utcnow()
        db.session.commit()

    def has_role(self, *roles):
        # company admins may do everything
        return self.role == self.ROLE_ADMIN or self.role in roles

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE and not self.is_locked()

    def to_dict(self, exclude=('password_hash',)):
        return super().to_dict(exclude=exclude)

    def __repr__(self):
        return f'<AppUser {self.email}>'
