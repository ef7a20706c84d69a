# scripts/seed_data.py
import asyncio
from cafepos.core.bootstrap import build_engine
from cafepos.schemas.catalog import CatalogType
from cafepos.services.engine import CafeEngine


async def seed(engine: CafeEngine):
    # Flavors
    flavors = await engine.catalog.import_default_flavor_set()
    print(f"Flavors: {flavors.created} created, {flavors.reused} already present")

    # Materials and ingredients (stock only applies when first created)
    cup = await engine.catalog.create(CatalogType.MATERIAL, {
        "name": "12oz Cup", "is_package": True, "package_price": "250.00",
        "units_per_package": 50, "stock_quantity": 300,
    })
    straw = await engine.catalog.create(CatalogType.MATERIAL, {
        "name": "Straw", "price_per_piece": "0.50", "stock_quantity": 500,
    })
    beans = await engine.catalog.create(CatalogType.INGREDIENT, {
        "name": "Coffee Beans", "measurement_unit": "g", "price_per_purchase": "800.00",
        "units_per_purchase": 1000, "stock_quantity": 1000,
    })
    milk = await engine.catalog.create(CatalogType.INGREDIENT, {
        "name": "Fresh Milk", "measurement_unit": "ml", "price_per_purchase": "95.00",
        "units_per_purchase": 1000, "stock_quantity": 5000,
    })
    print("Materials:", str(cup.id), str(straw.id))
    print("Ingredients:", str(beans.id), str(milk.id))

    # Add-ons
    shot = await engine.catalog.create(CatalogType.ADDON, {"name": "Extra Shot", "price": "15.00", "stock_quantity": 100})
    pearls = await engine.catalog.create(CatalogType.ADDON, {"name": "Pearls", "price": "10.00", "stock_quantity": 100})
    print("Add-ons:", str(shot.id), str(pearls.id))

    # Products
    iced = await engine.catalog.create(CatalogType.PRODUCT, {
        "name": "Iced Coffee",
        "category": "InsideBeverages",
        "flavors": ["Americano", "Spanish Latte", "Caramel Macchiato"],
        "sizes": [
            {
                "name": "Medium", "price": "95.00",
                "materials": [{"material_id": str(cup.id), "quantity": 1}, {"material_id": str(straw.id), "quantity": 1}],
                "ingredients": [{"ingredient_id": str(beans.id), "quantity": 8}, {"ingredient_id": str(milk.id), "quantity": 150}],
            },
            {
                "name": "Large", "price": "120.00",
                "materials": [{"material_id": str(cup.id), "quantity": 1}, {"material_id": str(straw.id), "quantity": 1}],
                "ingredients": [{"ingredient_id": str(beans.id), "quantity": 10}, {"ingredient_id": str(milk.id), "quantity": 200}],
            },
        ],
    })
    print("Product:", str(iced.id), [f"{s.name} {s.price}" for s in iced.sizes])

    print("Catalog seeded.")


async def main():
    engine = await build_engine()
    try:
        await seed(engine)
    finally:
        await engine.close()

if __name__ == "__main__":
    asyncio.run(main())
