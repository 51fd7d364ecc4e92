import random
from faker import Faker
from faker.providers import BaseProvider


class DairyProvider(BaseProvider):
    """
    Dairy-specific fake data: product lines, shop and
    collection-centre names, storage locations.
    """

    # (name, uom, shelf life in days)
    product_lines = [
        ('Toned Milk 500ml', 'packet', 2),
        ('Full Cream Milk 1L', 'packet', 2),
        ('Buffalo Milk 1L', 'packet', 2),
        ('Fresh Curd 400g', 'cup', 7),
        ('Buttermilk 200ml', 'pouch', 3),
        ('Paneer 200g', 'pack', 10),
        ('Table Butter 100g', 'pack', 90),
        ('Cow Ghee 1L', 'tin', 270),
        ('Lassi 200ml', 'bottle', 5),
        ('Khoa 500g', 'pack', 5),
    ]

    shop_suffixes = ['General Store', 'Kirana', 'Dairy Point', 'Mart', 'Provision Store', 'Sweets']

    centre_suffixes = ['Milk Society', 'Dairy Farm', 'Gaushala', 'Collection Centre']

    locations = ['PLANT-1', 'COLD-ROOM-A', 'COLD-ROOM-B', 'DEPOT-NORTH', 'DEPOT-SOUTH']

    def dairy_products(self):
        """The whole catalogue, in a stable order"""
        return list(self.product_lines)

    def shop_name(self):
        return f"{self.generator.last_name()} {self.random_element(self.shop_suffixes)}"

    def supplier_name(self):
        return f"{self.generator.city()} {self.random_element(self.centre_suffixes)}"

    def location_id(self):
        return self.random_element(self.locations)

    def milk_quality(self):
        """(fat %, snf %) within the usual range for cow/buffalo milk"""
        return round(random.uniform(3.2, 7.5), 2), round(random.uniform(8.0, 9.5), 2)


fake = Faker('en_IN')
fake.add_provider(DairyProvider)
