"""Wires config into the stores, gate and repositories."""

import logging
from dataclasses import dataclass
from typing import Optional

from job_board.config import AppConfig
from job_board.jobs.repository import JobRepository
from job_board.messages.repository import MessageRepository
from job_board.notifications.outbox import NotificationOutbox
from job_board.storage.database import LocalDatabase
from job_board.storage.firestore import FirestoreStore
from job_board.storage.jobs import JobStore
from job_board.storage.messages import MessageStore
from job_board.storage.remote import DocumentStore
from job_board.storage.session import SessionStore
from job_board.storage.users import UserStore
from job_board.sync.connectivity import ConnectivityGate, HttpCheckGate, StaticGate
from job_board.users.repository import UserRepository
from job_board.worker import MessageCheckWorker

logger = logging.getLogger("job_board.services")


@dataclass
class Services:
    db: LocalDatabase
    remote: Optional[DocumentStore]
    gate: ConnectivityGate
    jobs: JobRepository
    messages: MessageRepository
    users: UserRepository
    session: SessionStore
    worker: MessageCheckWorker
    search_limit: int = 20

    def close(self):
        self.db.close()


def build_services(
    config: AppConfig,
    offline: bool = False,
    remote: Optional[DocumentStore] = None,
    gate: Optional[ConnectivityGate] = None,
) -> Services:
    """Build the object graph; ``remote`` and ``gate`` override the configured ones."""
    db = LocalDatabase(config.local.database_url)

    if remote is None and config.remote_configured:
        remote = FirestoreStore(config.remote)
    if remote is None:
        logger.info("No remote store configured; all operations stay local")

    if gate is None:
        if offline:
            gate = StaticGate(online=False)
        else:
            gate = HttpCheckGate(config.connectivity.check_url, config.connectivity.timeout)

    user_store = UserStore(db)
    users = UserRepository(user_store, remote, gate)
    jobs = JobRepository(JobStore(db), remote, gate)

    def sender_name(user_id: int) -> str:
        user = user_store.get(user_id)
        return user.display_name if user else ""

    messages = MessageRepository(
        MessageStore(db),
        remote,
        gate,
        outbox=NotificationOutbox(remote) if remote is not None else None,
        sender_name=sender_name,
        send_window_ms=config.sync.send_duplicate_window_ms,
        pull_window_ms=config.sync.pull_duplicate_window_ms,
    )
    worker = MessageCheckWorker(
        db,
        messages,
        users,
        lookback_ms=config.sync.message_check_lookback_ms,
        max_attempts=config.sync.message_check_max_attempts,
    )
    return Services(
        db=db,
        remote=remote,
        gate=gate,
        jobs=jobs,
        messages=messages,
        users=users,
        session=SessionStore(db),
        worker=worker,
        search_limit=config.sync.search_limit,
    )
