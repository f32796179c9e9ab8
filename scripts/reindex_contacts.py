#!/usr/bin/env python3
"""Rewrite stored contact documents so derived fields match the current mapping.

Recomputes searchKeywords and copies address coordinates into location for
contacts saved before those fields existed. Run from repo root with .env
(NEO4J_URI, NEO4J_USER, NEO4J_PASSWORD). Idempotent.
"""
import logging
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT / "src"))

from dotenv import load_dotenv  # noqa: E402
from neo4j import GraphDatabase  # noqa: E402

from agenda.application import ContactService  # noqa: E402
from agenda.infrastructure import Neo4jDocumentStore  # noqa: E402

load_dotenv(REPO_ROOT / ".env")


def main() -> int:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )
    uri = os.environ.get("NEO4J_URI", "bolt://localhost:7687").strip()
    user = os.environ.get("NEO4J_USER", "neo4j").strip()
    password = os.environ.get("NEO4J_PASSWORD", "password").strip()
    store = Neo4jDocumentStore(GraphDatabase.driver(uri, auth=(user, password)))
    try:
        store.ensure_constraints()
        changed = ContactService(store).reindex_contacts()
        print(f"Reindexed {changed} contact document(s).")
        return 0
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
