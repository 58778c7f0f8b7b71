"""
URL Frontier implementation: the durable FIFO queue of URLs awaiting a crawl.

Two backends share the same contract:

- FileURLFrontier keeps an append-only, newline-delimited log plus a separately
  persisted read cursor (byte offset).
- RedisURLFrontier keeps the queue in a Redis list.

Delivery is at-least-once: dequeue() hands out entries in FIFO order, and
ack() makes their removal durable. Entries dequeued but never acknowledged
are handed out again after a restart.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..utils.config import FrontierConfig


class FrontierError(Exception):
    """Raised when the frontier's persistence medium fails."""
    pass


class EmptyFrontier(Exception):
    """Raised by dequeue() when no URL is waiting. Not an error condition."""
    pass


class URLFrontier:
    """Abstract base class for durable URL queues."""

    async def initialize(self):
        """Open the persisted queue and recover unacknowledged entries."""
        raise NotImplementedError

    async def enqueue(self, url: str):
        """Append a URL to the tail of the queue."""
        raise NotImplementedError

    async def dequeue(self) -> str:
        """Remove and return the oldest queued URL, or raise EmptyFrontier."""
        raise NotImplementedError

    async def ack(self):
        """Acknowledge every URL dequeued so far."""
        raise NotImplementedError

    async def is_empty(self) -> bool:
        """Check if no URL is waiting."""
        raise NotImplementedError

    async def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        raise NotImplementedError

    async def close(self):
        """Release resources held by the frontier."""
        pass


def _check_url(url: str):
    # One entry per line in the log; a line break would split the entry.
    if '\n' in url or '\r' in url:
        raise ValueError(f"Frontier entries cannot contain line breaks: {url!r}")


class FileURLFrontier(URLFrontier):
    """
    Frontier backed by an append-only log file and a read cursor.

    Layout on disk:
        <path>          one URL per line, appended by enqueue()
        <path>.offset   byte offset of the first unacknowledged line

    dequeue() advances an in-memory read offset, so it never rewrites the log.
    ack() commits that offset with an atomic replace of the cursor file. When
    the log is fully drained and acknowledged it is truncated back to zero.

    Crash behaviour: URLs after the committed cursor are never lost. URLs that
    were dequeued but not yet acknowledged are delivered again on restart. A
    last line without its newline is an interrupted append; dequeue() never
    returns it and initialize() cuts it off.
    """

    def __init__(self, path: str):
        self.log_path = Path(path)
        self.offset_path = Path(f"{path}.offset")
        self.logger = logging.getLogger(__name__)

        self._lock = asyncio.Lock()
        self._read_offset = 0
        self._committed_offset = 0

        self.stats = {
            'enqueued': 0,
            'dequeued': 0
        }

    async def initialize(self):
        """Create the log if needed and load the committed cursor."""
        async with self._lock:
            try:
                self.log_path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.log_path, 'ab'):
                    pass
                self._repair_tail()

                committed = self._read_committed_offset()
                log_size = self.log_path.stat().st_size

                # A cursor past the end means we crashed between truncating the
                # drained log and resetting the cursor.
                if committed > log_size:
                    self.logger.warning(
                        f"Frontier cursor {committed} beyond log size {log_size}, resetting"
                    )
                    committed = 0
                    self._write_committed_offset(0)

                self._committed_offset = committed
                self._read_offset = committed

            except OSError as e:
                raise FrontierError(f"Failed to open frontier log {self.log_path}: {e}") from e

        self.logger.info(
            f"Initialized file frontier at {self.log_path} (cursor={self._committed_offset})"
        )

    def _repair_tail(self):
        """Cut a partial last line left by an append that never finished."""
        with open(self.log_path, 'r+b') as f:
            size = f.seek(0, os.SEEK_END)
            end = size
            keep = 0
            while end > 0:
                start = max(0, end - 4096)
                f.seek(start)
                newline = f.read(end - start).rfind(b'\n')
                if newline != -1:
                    keep = start + newline + 1
                    break
                end = start

            if keep < size:
                self.logger.warning(
                    f"Dropping {size - keep} bytes of incomplete entry at end of {self.log_path}"
                )
                f.truncate(keep)

    def _read_committed_offset(self) -> int:
        if not self.offset_path.exists():
            return 0

        raw = self.offset_path.read_text(encoding='ascii').strip()
        if not raw:
            return 0

        try:
            return int(raw)
        except ValueError as e:
            raise FrontierError(f"Corrupt frontier cursor file {self.offset_path}: {raw!r}") from e

    def _write_committed_offset(self, offset: int):
        tmp_path = self.offset_path.with_name(self.offset_path.name + '.tmp')
        with open(tmp_path, 'w', encoding='ascii') as f:
            f.write(str(offset))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.offset_path)

    async def enqueue(self, url: str):
        """Append a URL to the log."""
        _check_url(url)

        async with self._lock:
            try:
                with open(self.log_path, 'ab') as f:
                    f.write(url.encode('utf-8') + b'\n')
                    f.flush()
            except OSError as e:
                raise FrontierError(f"Failed to append to frontier log {self.log_path}: {e}") from e

            self.stats['enqueued'] += 1

        self.logger.debug(f"Added URL to frontier: {url}")

    async def dequeue(self) -> str:
        """Return the next URL after the read offset."""
        async with self._lock:
            try:
                with open(self.log_path, 'rb') as f:
                    f.seek(self._read_offset)
                    while True:
                        line = f.readline()
                        if not line.endswith(b'\n'):
                            break

                        try:
                            url = line.decode('utf-8').strip()
                        except UnicodeDecodeError as e:
                            raise FrontierError(
                                f"Undecodable entry at offset {self._read_offset} in {self.log_path}: {e}"
                            ) from e

                        self._read_offset += len(line)
                        if url:
                            self.stats['dequeued'] += 1
                            self.logger.debug(f"Retrieved URL from frontier: {url}")
                            return url

                if self._read_offset == self._committed_offset and self._read_offset > 0:
                    self._compact()

            except OSError as e:
                raise FrontierError(f"Failed to read frontier log {self.log_path}: {e}") from e

        raise EmptyFrontier()

    def _compact(self):
        """Truncate a drained, fully acknowledged log."""
        with open(self.log_path, 'r+b') as f:
            f.truncate(0)
        self._write_committed_offset(0)
        self._read_offset = 0
        self._committed_offset = 0
        self.logger.debug(f"Compacted drained frontier log {self.log_path}")

    async def ack(self):
        """Persist the read offset as the committed cursor."""
        async with self._lock:
            if self._read_offset == self._committed_offset:
                return

            try:
                self._write_committed_offset(self._read_offset)
            except OSError as e:
                raise FrontierError(f"Failed to commit frontier cursor {self.offset_path}: {e}") from e

            self._committed_offset = self._read_offset

    def _count_pending(self) -> int:
        with open(self.log_path, 'rb') as f:
            f.seek(self._read_offset)
            return sum(1 for line in f if line.endswith(b'\n') and line.strip())

    async def is_empty(self) -> bool:
        """Check if no URL is waiting past the read offset."""
        async with self._lock:
            try:
                return self._count_pending() == 0
            except OSError as e:
                raise FrontierError(f"Failed to read frontier log {self.log_path}: {e}") from e

    async def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        async with self._lock:
            try:
                pending = self._count_pending()
            except OSError as e:
                raise FrontierError(f"Failed to read frontier log {self.log_path}: {e}") from e

        return {
            'pending': pending,
            'enqueued': self.stats['enqueued'],
            'dequeued': self.stats['dequeued'],
            'cursor': self._committed_offset
        }


class RedisURLFrontier(URLFrontier):
    """
    Frontier backed by a Redis list.

    dequeue() atomically moves the head of the queue onto an in-flight list,
    ack() clears the in-flight list, and initialize() pushes anything left
    in flight back onto the head of the queue in its original order.
    """

    def __init__(self, redis_client: redis.Redis, queue_key: str = "crawlindex:frontier"):
        self.redis_client = redis_client
        self.queue_key = queue_key
        self.inflight_key = f"{queue_key}:inflight"
        self.logger = logging.getLogger(__name__)

        self._lock = asyncio.Lock()
        self.stats = {
            'enqueued': 0,
            'dequeued': 0
        }

    async def initialize(self):
        """Requeue entries left in flight by an interrupted run."""
        restored = 0
        async with self._lock:
            try:
                while await self.redis_client.lmove(
                    self.inflight_key, self.queue_key, 'RIGHT', 'LEFT'
                ) is not None:
                    restored += 1
                pending = await self.redis_client.llen(self.queue_key)
            except RedisError as e:
                raise FrontierError(f"Error initializing Redis frontier: {e}") from e

        self.logger.info(
            f"Initialized Redis frontier '{self.queue_key}' with {pending} queued URLs "
            f"({restored} restored from in-flight)"
        )

    async def enqueue(self, url: str):
        _check_url(url)

        async with self._lock:
            try:
                await self.redis_client.rpush(self.queue_key, url)
            except RedisError as e:
                raise FrontierError(f"Error adding URL to Redis: {e}") from e

            self.stats['enqueued'] += 1

        self.logger.debug(f"Added URL to frontier: {url}")

    async def dequeue(self) -> str:
        async with self._lock:
            try:
                item = await self.redis_client.lmove(
                    self.queue_key, self.inflight_key, 'LEFT', 'RIGHT'
                )
            except RedisError as e:
                raise FrontierError(f"Error retrieving URL from Redis: {e}") from e

            if item is None:
                raise EmptyFrontier()

            self.stats['dequeued'] += 1

        url = item.decode('utf-8') if isinstance(item, bytes) else item
        self.logger.debug(f"Retrieved URL from frontier: {url}")
        return url

    async def ack(self):
        async with self._lock:
            try:
                await self.redis_client.delete(self.inflight_key)
            except RedisError as e:
                raise FrontierError(f"Error acknowledging URLs in Redis: {e}") from e

    async def is_empty(self) -> bool:
        async with self._lock:
            try:
                return await self.redis_client.llen(self.queue_key) == 0
            except RedisError as e:
                raise FrontierError(f"Error reading Redis frontier: {e}") from e

    async def get_stats(self) -> Dict[str, int]:
        async with self._lock:
            try:
                pending = await self.redis_client.llen(self.queue_key)
                in_flight = await self.redis_client.llen(self.inflight_key)
            except RedisError as e:
                raise FrontierError(f"Error reading Redis frontier: {e}") from e

        return {
            'pending': pending,
            'in_flight': in_flight,
            'enqueued': self.stats['enqueued'],
            'dequeued': self.stats['dequeued']
        }

    async def close(self):
        await self.redis_client.aclose()


def create_frontier(config: FrontierConfig,
                    redis_client: Optional[redis.Redis] = None) -> URLFrontier:
    """Build the frontier backend selected in the configuration."""
    frontier_type = config.type.lower()

    if frontier_type == 'file':
        return FileURLFrontier(config.path)

    if frontier_type == 'redis':
        if redis_client is None:
            redis_config = config.redis
            redis_client = redis.Redis(
                host=redis_config.get('host', 'localhost'),
                port=redis_config.get('port', 6379),
                db=redis_config.get('db', 0),
                password=redis_config.get('password'),
                decode_responses=False
            )
        return RedisURLFrontier(
            redis_client,
            queue_key=config.redis.get('queue_key', 'crawlindex:frontier')
        )

    raise ValueError(f"Unknown frontier type: {config.type}")
