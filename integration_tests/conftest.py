"""Pytest configuration for the integration_tests package.

The integration_tests package leverages the testcontainers library to spin up a single node MongoDB replica set, so
that the server keeps an oplog. Setup and teardown of that container are managed in this module.
"""

import os
import time

import pytest
from loguru import logger
from pymongo import MongoClient
from pytest import FixtureRequest
from testcontainers.core.container import DockerContainer
from testcontainers.core.waiting_utils import wait_for_logs

mongodb_version: str = os.environ.get("TEST_MONGODB_VERSION", "6.0")
mongo_image_tag: str = f"mongo:{mongodb_version}"

replica_set_name: str = "rs0"
test_database: str = "test_db"


def build_mongo_eval_command(command: str) -> list[str]:
    """Build a MongoDB eval command that can be executed in a shell in a running container.

    Images from 6.0 on only ship mongosh, older ones only the legacy mongo shell, so both are tried.

    Args:
        command (str): The MongoDB command to execute.

    Returns:
        list[str]: A list of strings that can be passed as arguments to a shell command.
    """
    return [
        "sh",
        "-c",
        f"mongosh --quiet --eval \"{command}\" || mongo --quiet --eval \"{command}\"",
    ]


class MongoDbReplicaSetContainer(DockerContainer):
    """MongoDB single node replica set container, without authentication."""

    def __init__(self, image: str) -> None:
        super().__init__(image)
        self.with_exposed_ports(27017)
        self.with_command(f"--replSet {replica_set_name} --bind_ip_all")

    def get_connection_url(self) -> str:
        host: str = self.get_container_host_ip()
        port: str = self.get_exposed_port(27017)
        # the replica set advertises its in-container address, so topology discovery is skipped
        return f"mongodb://{host}:{port}/?directConnection=true"

    def start(self) -> "MongoDbReplicaSetContainer":
        super().start()
        wait_for_logs(self, "Waiting for connections")
        self._initiate()
        return self

    def _initiate(self) -> None:
        logger.info("Initializing one-node replica set")
        logger.info(f"Connection string: {self.get_connection_url()}")

        exit_code, output = self.exec(
            build_mongo_eval_command(
                f"rs.initiate({{_id: '{replica_set_name}', members: [{{_id: 0, host: 'localhost:27017'}}]}})"
            )
        )
        logger.info(f"rs.initiate() exec exit_code: {exit_code}")
        logger.info(f"rs.initiate() exec output: {output}")
        if exit_code != 0:
            raise ValueError(f"rs.initiate() failed with exit code: {exit_code}")

        client: MongoClient = MongoClient(self.get_connection_url())
        try:
            attempts: int = 60
            for attempt in range(attempts):
                if client.admin.command("hello").get("isWritablePrimary"):
                    logger.info(f"Replica set primary elected after {attempt} attempts")
                    return
                time.sleep(0.5)
        finally:
            client.close()
        raise ValueError(f"Replica set did not elect a primary after {attempts} attempts")


mongodb: MongoDbReplicaSetContainer = MongoDbReplicaSetContainer(mongo_image_tag)


@pytest.fixture(scope="module", autouse=True)
def setup(request: FixtureRequest) -> None:
    """Setup the MongoDB container."""

    mongodb.start()

    def remove_container():
        """Define container shutdown method in a function that we can register as a Pytest fixture finalizer."""
        mongodb.stop()

    request.addfinalizer(remove_container)

    # make the connection string available to the seed utilities
    os.environ["OPLOG_EMITTER_TEST_CONNECTION_STRING"] = mongodb.get_connection_url()


@pytest.fixture(scope="function", autouse=True)
def clear_mongodb_data() -> None:
    """Clear data from the MongoDB test database (by dropping the database used in tests)."""
    mongo_client: MongoClient = MongoClient(os.environ["OPLOG_EMITTER_TEST_CONNECTION_STRING"])
    logger.info(f"Clearing data from test database: {test_database}")
    mongo_client.drop_database(test_database)
    mongo_client.close()
