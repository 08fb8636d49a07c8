"""CLI command for preparing the MongoDB database."""

import time

import typer
from pymongo.errors import PyMongoError
from rich.console import Console

from ..config import OrgPulseConfig
from ..storage.mongo import DocumentStore

console = Console()


def connect_store(config: OrgPulseConfig) -> DocumentStore:
    """Build a DocumentStore from validated configuration (not yet opened)."""
    if config.mongo_uri is None:
        raise ValueError("MONGO_URI is not set")
    return DocumentStore(
        config.mongo_uri, database=config.mongo_database, **config.mongo_options
    )


def load_config() -> OrgPulseConfig:
    """Read configuration, exiting with a message if it is incomplete."""
    config = OrgPulseConfig()
    try:
        config.validate()
    except ValueError as e:
        console.print(f"❌ Configuration error: {e}")
        console.print("💡 Set MONGO_URI in your environment or a .env file")
        raise typer.Exit(1)
    return config


def init() -> None:
    """Verify the database connection and create indexes.

    Safe to run repeatedly: existing indexes are left as they are.
    """
    console.print("🔧 Initializing OrgPulse database...")
    config = load_config()

    start = time.monotonic()
    try:
        with connect_store(config) as store:
            store.ping()
            console.print("✓ Database connection verified")
            console.print("⏳ Creating database indexes...")
            names = store.create_indexes()
    except PyMongoError as e:
        console.print(f"❌ Initialization failed: {e}")
        console.print("💡 Is MongoDB running? Check MONGO_URI in your .env")
        raise typer.Exit(1)

    console.print(f"✅ {len(names)} indexes ready")
    console.print(f"⏱️  Completed in {time.monotonic() - start:.2f}s")
    console.print("🎉 OrgPulse initialized successfully!")
