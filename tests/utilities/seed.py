"""Utility module that tests may use to generate oplog traffic on a MongoDB replica set."""


import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from bson.objectid import ObjectId
from loguru import logger
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult


@dataclass
class User:  # pylint: disable=too-many-instance-attributes
    """Generic User model containing members with a mix of data types."""

    first_name: str
    last_name: str
    age: int
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    deleted: bool = False
    hobbies: List[str] = field(default_factory=list)
    _id: Optional[ObjectId] = None


def insert_user(collection: Collection, user: User) -> User:
    """Insert the provided User record into the provided Collection, producing an ``i`` oplog entry."""
    now: datetime = datetime.now(timezone.utc)
    user.created_at = now
    user.updated_at = now
    document: dict = asdict(user)
    document.pop("_id")
    result: InsertOneResult = collection.insert_one(document)
    user._id = result.inserted_id  # pylint: disable=protected-access
    logger.info(f"Inserted User {user.first_name} {user.last_name}, resulting _id {result.inserted_id}")
    return user


def update_user(collection: Collection, user_id: ObjectId, **changes) -> int:
    """Update one User by id with ``$set``, producing a ``u`` oplog entry."""
    changes["updated_at"] = datetime.now(timezone.utc)
    result: UpdateResult = collection.update_one({"_id": user_id}, {"$set": changes})
    logger.info(f"Updated User {user_id}, modified {result.modified_count}")
    return result.modified_count


def delete_user(collection: Collection, user_id: ObjectId) -> int:
    """Delete one User by id, producing a ``d`` oplog entry."""
    result: DeleteResult = collection.delete_one({"_id": user_id})
    logger.info(f"Deleted User {user_id}, deleted {result.deleted_count}")
    return result.deleted_count


def get_collection(database_name: str = "test_db", collection_name: str = "User") -> Collection:
    """Returns a MongoDB Collection based on configured settings."""
    connection_string: Optional[str] = os.getenv("OPLOG_EMITTER_TEST_CONNECTION_STRING")
    if not connection_string:
        raise ValueError("connection_string must be provided")
    client: MongoClient = MongoClient(connection_string)
    database: Database = client.get_database(database_name)
    return database.get_collection(collection_name)


def seed(collection: Collection) -> User:
    """Run an insert, an update and a delete on the provided Collection."""
    user: User = insert_user(collection, User(first_name="Ted", last_name="Lasso", age=48, hobbies=["football"]))
    update_user(collection, user._id, age=49)  # pylint: disable=protected-access
    delete_user(collection, user._id)  # pylint: disable=protected-access
    return user


def main() -> None:
    """Run a series of seed operations on a MongoDB database."""
    seed(get_collection())


if __name__ == "__main__":
    main()
