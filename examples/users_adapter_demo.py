#!/usr/bin/env python3
"""
ScyllaDB Adapter Demo

Walks a users service through the adapter lifecycle against a local node:
1. Binding the users model and connecting (schema is created on first run)
2. Inserting and querying records
3. Partial updates and searches
4. Bulk removal
"""

import asyncio
import logging

from platformq_scylla_adapter import ScyllaDbAdapter


class UsersService:
    """Minimal host service declaring the users model"""

    schema = {
        "name": "users",
        "model": {
            "fields": {
                "id": "uuid",
                "username": "text",
                "password": "text",
                "age": "int",
            },
            "key": ["id"],
            "table_name": "users",
            "indexes": ["username"],
            "options": {
                "timestamps": {
                    "createdAt": "created_at",
                    "updatedAt": "updated_at",
                }
            },
        },
    }

    def __init__(self):
        self.logger = logging.getLogger("users-service")

    async def after_connected(self):
        print("Users table is ready")


async def main():
    """Main entry point"""
    logging.basicConfig(level=logging.INFO)

    service = UsersService()
    adapter = ScyllaDbAdapter(
        contactPoints=["127.0.0.1"],
        localDataCenter="datacenter1",
        keyspace="demo",
        ormOptions={"migration": "alter"},
    )
    adapter.init(broker=None, service=service)
    await adapter.connect()

    try:
        print("\n=== Inserting users ===")
        users = await adapter.insert_many([
            {"username": "Alice", "password": "pw", "age": 21},
            {"username": "Bob", "password": "pw", "age": 35},
        ])
        for user in users:
            print(f"Created {user['username']} with id {user['id']}")

        print("\n=== Querying ===")
        young = await adapter.find({"q": {"age": {"$gt": 20, "$lte": 24}}})
        print(f"Users aged 21-24: {[u['username'] for u in young]}")
        matches = await adapter.find({"search": "Ali", "searchFields": ["username"]})
        print(f"Search 'Ali': {[u['username'] for u in matches]}")

        print("\n=== Updating ===")
        updated = await adapter.update_by_id(users[0]["id"], {"$set": {"age": 22}})
        print(f"{updated['username']} is now {updated['age']}")

        print("\n=== Cleaning up ===")
        removed = await adapter.clear()
        print(f"Removed {len(removed)} users, {await adapter.count()} left")
    finally:
        await adapter.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
