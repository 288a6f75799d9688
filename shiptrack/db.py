"""
Async Postgres store: shipments plus their append-only history, checkpoints and notes.
Each write runs in a single transaction: lock the shipment row (FOR UPDATE), load the
current state, validate, then insert the child record and update the row.
"""
from typing import Any

import asyncpg
from asyncpg.exceptions import UniqueViolationError

from shiptrack import lifecycle
from shiptrack.config import settings
from shiptrack.errors import NotFoundError, ValidationError
from shiptrack.models import (
    Checkpoint,
    CreateShipmentBody,
    CustomerPublic,
    Note,
    Shipment,
    StatusHistoryItem,
)
from shiptrack.shipment_state import Status

_pool: asyncpg.Pool | None = None


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=1,
            max_size=5,
            command_timeout=60,
        )
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


async def init_schema(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS customers (
                id VARCHAR(64) PRIMARY KEY,
                name VARCHAR(255),
                email VARCHAR(255) NOT NULL,
                phone VARCHAR(50)
            );
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS shipments (
                id VARCHAR(64) PRIMARY KEY,
                tracking_id VARCHAR(64) NOT NULL UNIQUE,
                customer_id VARCHAR(64) NOT NULL,
                service_type VARCHAR(20) NOT NULL,
                status VARCHAR(20) NOT NULL,
                pickup_location VARCHAR(255) NOT NULL,
                destination_location VARCHAR(255) NOT NULL,
                package_type VARCHAR(100) NOT NULL,
                weight VARCHAR(50) NOT NULL,
                dimensions VARCHAR(100) NOT NULL,
                phone VARCHAR(50) NOT NULL,
                receiver_phone VARCHAR(50),
                amount BIGINT NOT NULL DEFAULT 0 CHECK (amount >= 0),
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            );
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_shipments_customer_id ON shipments(customer_id);
        """)
        # seq keeps append order stable when timestamps collide
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS shipment_status_history (
                seq BIGSERIAL PRIMARY KEY,
                id VARCHAR(64) NOT NULL UNIQUE,
                shipment_id VARCHAR(64) NOT NULL REFERENCES shipments(id) ON DELETE CASCADE,
                status VARCHAR(20) NOT NULL,
                timestamp TIMESTAMPTZ NOT NULL,
                admin_name VARCHAR(100),
                note TEXT
            );
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS shipment_checkpoints (
                seq BIGSERIAL PRIMARY KEY,
                id VARCHAR(64) NOT NULL UNIQUE,
                shipment_id VARCHAR(64) NOT NULL REFERENCES shipments(id) ON DELETE CASCADE,
                location VARCHAR(255) NOT NULL,
                description TEXT NOT NULL,
                timestamp TIMESTAMPTZ NOT NULL,
                admin_name VARCHAR(100)
            );
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS shipment_notes (
                seq BIGSERIAL PRIMARY KEY,
                id VARCHAR(64) NOT NULL UNIQUE,
                shipment_id VARCHAR(64) NOT NULL REFERENCES shipments(id) ON DELETE CASCADE,
                text TEXT NOT NULL,
                timestamp TIMESTAMPTZ NOT NULL,
                admin_name VARCHAR(100)
            );
        """)
        for table in ("shipment_status_history", "shipment_checkpoints", "shipment_notes"):
            await conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{table}_shipment_id ON {table}(shipment_id);"
            )


_SHIPMENT_SELECT = """
    SELECT s.*, c.name AS customer_name, c.email AS customer_email, c.phone AS customer_phone
    FROM shipments s
    LEFT JOIN customers c ON c.id = s.customer_id
"""


def _customer_from_row(row: asyncpg.Record) -> CustomerPublic | None:
    if row["customer_email"] is None:
        return None
    return CustomerPublic(
        id=row["customer_id"],
        name=row["customer_name"],
        email=row["customer_email"],
        phone=row["customer_phone"],
    )


async def _load_children(conn: asyncpg.Connection, shipment_ids: list[str]) -> tuple[dict, dict, dict]:
    history: dict[str, list[StatusHistoryItem]] = {sid: [] for sid in shipment_ids}
    checkpoints: dict[str, list[Checkpoint]] = {sid: [] for sid in shipment_ids}
    notes: dict[str, list[Note]] = {sid: [] for sid in shipment_ids}
    if not shipment_ids:
        return history, checkpoints, notes

    for r in await conn.fetch(
        "SELECT * FROM shipment_status_history WHERE shipment_id = ANY($1) ORDER BY seq;",
        shipment_ids,
    ):
        history[r["shipment_id"]].append(StatusHistoryItem(
            id=r["id"], shipment_id=r["shipment_id"], status=r["status"],
            timestamp=r["timestamp"], admin_name=r["admin_name"], note=r["note"],
        ))
    for r in await conn.fetch(
        "SELECT * FROM shipment_checkpoints WHERE shipment_id = ANY($1) ORDER BY seq;",
        shipment_ids,
    ):
        checkpoints[r["shipment_id"]].append(Checkpoint(
            id=r["id"], shipment_id=r["shipment_id"], location=r["location"],
            description=r["description"], timestamp=r["timestamp"], admin_name=r["admin_name"],
        ))
    for r in await conn.fetch(
        "SELECT * FROM shipment_notes WHERE shipment_id = ANY($1) ORDER BY seq;",
        shipment_ids,
    ):
        notes[r["shipment_id"]].append(Note(
            id=r["id"], shipment_id=r["shipment_id"], text=r["text"],
            timestamp=r["timestamp"], admin_name=r["admin_name"],
        ))
    return history, checkpoints, notes


async def _hydrate(conn: asyncpg.Connection, rows: list[asyncpg.Record]) -> list[Shipment]:
    history, checkpoints, notes = await _load_children(conn, [r["id"] for r in rows])
    return [
        Shipment(
            id=r["id"],
            tracking_id=r["tracking_id"],
            customer_id=r["customer_id"],
            customer=_customer_from_row(r),
            service_type=r["service_type"],
            status=r["status"],
            pickup_location=r["pickup_location"],
            destination_location=r["destination_location"],
            package_type=r["package_type"],
            weight=r["weight"],
            dimensions=r["dimensions"],
            phone=r["phone"],
            receiver_phone=r["receiver_phone"],
            amount=r["amount"],
            created_at=r["created_at"],
            updated_at=r["updated_at"],
            status_history=history[r["id"]],
            checkpoints=checkpoints[r["id"]],
            notes=notes[r["id"]],
        )
        for r in rows
    ]


async def _load_shipment(conn: asyncpg.Connection, shipment_id: str, for_update: bool = False) -> Shipment:
    if for_update:
        # Lock the shipment row alone; FOR UPDATE cannot apply to the nullable side of the join.
        locked = await conn.fetchrow("SELECT id FROM shipments WHERE id = $1 FOR UPDATE;", shipment_id)
        if locked is None:
            raise NotFoundError("Shipment", shipment_id)
    row = await conn.fetchrow(_SHIPMENT_SELECT + " WHERE s.id = $1;", shipment_id)
    if row is None:
        raise NotFoundError("Shipment", shipment_id)
    return (await _hydrate(conn, [row]))[0]


async def _insert_history(conn: asyncpg.Connection, item: StatusHistoryItem) -> None:
    await conn.execute(
        """
        INSERT INTO shipment_status_history (id, shipment_id, status, timestamp, admin_name, note)
        VALUES ($1, $2, $3, $4, $5, $6);
        """,
        item.id,
        item.shipment_id,
        item.status.value,
        item.timestamp,
        item.admin_name,
        item.note,
    )


class PostgresShipmentStore:
    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def list_shipments(
        self, customer_id: str | None = None, status: Status | None = None
    ) -> list[Shipment]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                _SHIPMENT_SELECT + """
                WHERE ($1::varchar IS NULL OR s.customer_id = $1)
                  AND ($2::varchar IS NULL OR s.status = $2)
                ORDER BY s.created_at DESC;
                """,
                customer_id,
                status.value if status is not None else None,
            )
            return await _hydrate(conn, rows)

    async def get_shipment(self, shipment_id: str) -> Shipment:
        async with self.pool.acquire() as conn:
            return await _load_shipment(conn, shipment_id)

    async def get_customer(self, customer_id: str) -> CustomerPublic:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM customers WHERE id = $1;", customer_id)
        if row is None:
            raise NotFoundError("Customer", customer_id)
        return CustomerPublic(id=row["id"], name=row["name"], email=row["email"], phone=row["phone"])

    async def upsert_customer(self, customer: CustomerPublic) -> CustomerPublic:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO customers (id, name, email, phone) VALUES ($1, $2, $3, $4)
                ON CONFLICT (id) DO UPDATE SET name = $2, email = $3, phone = $4;
                """,
                customer.id,
                customer.name,
                customer.email,
                customer.phone,
            )
        return customer

    async def create_shipment(self, body: CreateShipmentBody) -> Shipment:
        customer = await self.get_customer(body.customer_id)
        shipment = lifecycle.new_shipment(body, customer)
        async with self.pool.acquire() as conn:
            try:
                async with conn.transaction():
                    await conn.execute(
                        """
                        INSERT INTO shipments (
                            id, tracking_id, customer_id, service_type, status,
                            pickup_location, destination_location, package_type, weight,
                            dimensions, phone, receiver_phone, amount, created_at, updated_at
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15);
                        """,
                        shipment.id,
                        shipment.tracking_id,
                        shipment.customer_id,
                        shipment.service_type.value,
                        shipment.status.value,
                        shipment.pickup_location,
                        shipment.destination_location,
                        shipment.package_type,
                        shipment.weight,
                        shipment.dimensions,
                        shipment.phone,
                        shipment.receiver_phone,
                        shipment.amount,
                        shipment.created_at,
                        shipment.updated_at,
                    )
                    await _insert_history(conn, shipment.status_history[0])
            except UniqueViolationError:
                raise ValidationError("trackingId", "Tracking ID already exists")
        return shipment

    async def update_status(
        self,
        shipment_id: str,
        target: Status,
        admin_name: str | None = None,
        note: str | None = None,
    ) -> Shipment:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                current = await _load_shipment(conn, shipment_id, for_update=True)
                updated, item = lifecycle.apply_transition(
                    current, target, admin_name=admin_name, note=note
                )
                await _insert_history(conn, item)
                await conn.execute(
                    "UPDATE shipments SET status = $1, updated_at = $2 WHERE id = $3;",
                    updated.status.value,
                    updated.updated_at,
                    shipment_id,
                )
        return updated

    async def add_checkpoint(
        self, shipment_id: str, location: Any, description: Any, admin_name: Any = None
    ) -> Checkpoint:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await _load_shipment(conn, shipment_id, for_update=True)
                checkpoint = lifecycle.build_checkpoint(shipment_id, location, description, admin_name)
                await conn.execute(
                    """
                    INSERT INTO shipment_checkpoints (id, shipment_id, location, description, timestamp, admin_name)
                    VALUES ($1, $2, $3, $4, $5, $6);
                    """,
                    checkpoint.id,
                    shipment_id,
                    checkpoint.location,
                    checkpoint.description,
                    checkpoint.timestamp,
                    checkpoint.admin_name,
                )
                await conn.execute(
                    "UPDATE shipments SET updated_at = $1 WHERE id = $2;",
                    checkpoint.timestamp,
                    shipment_id,
                )
        return checkpoint

    async def add_note(self, shipment_id: str, text: Any, admin_name: Any = None) -> Note:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await _load_shipment(conn, shipment_id, for_update=True)
                note = lifecycle.build_note(shipment_id, text, admin_name)
                await conn.execute(
                    """
                    INSERT INTO shipment_notes (id, shipment_id, text, timestamp, admin_name)
                    VALUES ($1, $2, $3, $4, $5);
                    """,
                    note.id,
                    shipment_id,
                    note.text,
                    note.timestamp,
                    note.admin_name,
                )
                await conn.execute(
                    "UPDATE shipments SET updated_at = $1 WHERE id = $2;",
                    note.timestamp,
                    shipment_id,
                )
        return note

    async def update_amount(self, shipment_id: str, amount: Any) -> Shipment:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                current = await _load_shipment(conn, shipment_id, for_update=True)
                updated = lifecycle.apply_amount(current, amount)
                await conn.execute(
                    "UPDATE shipments SET amount = $1, updated_at = $2 WHERE id = $3;",
                    updated.amount,
                    updated.updated_at,
                    shipment_id,
                )
        return updated

    async def delete_shipment(self, shipment_id: str) -> None:
        async with self.pool.acquire() as conn:
            result = await conn.execute("DELETE FROM shipments WHERE id = $1;", shipment_id)
        if result == "DELETE 0":
            raise NotFoundError("Shipment", shipment_id)

    async def close(self) -> None:
        await close_pool()
