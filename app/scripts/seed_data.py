# app/scripts/seed_data.py
import asyncio
import uuid
from decimal import Decimal
from tortoise import Tortoise
from app.core.db import DB_URL, MODELS_MODULES
from app.models.package import PackageStatus
from app.services.package_service import create_package, update_package_status

async def init():
    await Tortoise.init(db_url=DB_URL, modules={"models": MODELS_MODULES})
    # safe to call in dev, tables are only created when missing
    await Tortoise.generate_schemas()

async def seed():
    parcel_shop = uuid.uuid4()
    hub = uuid.uuid4()

    # A few packages, each with a 'created' notification waiting in the outbox
    for weight in ("0.750", "2.300", "12.000"):
        package = await create_package(
            parcel_shop_id=parcel_shop,
            sender_id=uuid.uuid4(),
            origin_address_id=uuid.uuid4(),
            destination_address_id=uuid.uuid4(),
            weight_kg=Decimal(weight),
        )
        print("Package:", package.tracking_code)

    # One package moves on while its first notification is still pending
    await update_package_status(package.tracking_code, PackageStatus.IN_TRANSIT, hub, message="Left the parcel shop")

    print("Packages seeded. Start the outbox poller to deliver notifications.")

async def main():
    await init()
    await seed()
    await Tortoise.close_connections()

if __name__ == "__main__":
    asyncio.run(main())
