"""Config Publisher control API — trigger and inspect collection cycles."""

from __future__ import annotations

import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from collectors import GnmiCollector
from inventory import PublisherConfig, load_config
from models import CollectionJob
from publisher import DEFAULT_CONFIG_PATH, KafkaPublisher, run_cycle

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"

app = FastAPI(title="Config Publisher", description="gNMI config collection to Kafka", version=VERSION)

config_path = os.environ.get("CONFIG_PUB_CONFIG", DEFAULT_CONFIG_PATH)

cfg: PublisherConfig
try:
    cfg = load_config(config_path)
except Exception as e:
    logger.warning("Could not load config: %s", e)
    cfg = PublisherConfig()

_collector = GnmiCollector()
_publisher: Optional[KafkaPublisher] = None
_jobs: dict[str, CollectionJob] = {}
_cycle_lock = threading.Lock()


def _get_publisher() -> KafkaPublisher:
    global _publisher
    if _publisher is None:
        _publisher = KafkaPublisher(cfg.kafka)
    return _publisher


class CollectRequest(BaseModel):
    hosts: list[str] = Field(default_factory=list)


@app.post("/api/collect")
async def collect(request: CollectRequest):
    unknown = [h for h in request.hosts if cfg.get_host(h) is None]
    if unknown:
        raise HTTPException(404, f"Hosts not configured: {', '.join(unknown)}")

    try:
        publisher = _get_publisher()
    except Exception as e:
        raise HTTPException(503, f"Kafka publisher unavailable: {e}")

    if not _cycle_lock.acquire(blocking=False):
        raise HTTPException(409, "a collection cycle is already running")

    try:
        job_id = str(uuid.uuid4())
        hosts = cfg.resolved_hosts(request.hosts)
        job = CollectionJob(
            id=job_id,
            status="running",
            started_at=datetime.now(timezone.utc),
            hosts=[h.name for h in hosts],
        )
        _jobs[job_id] = job

        def _run_collection():
            try:
                published, errors = run_cycle(hosts, _collector, publisher)
                job.published = published
                job.errors = errors
                job.status = "completed" if not errors else "completed_with_errors"
            except Exception as exc:
                job.status = "failed"
                job.errors.append(str(exc))
            finally:
                job.completed_at = datetime.now(timezone.utc)
                _cycle_lock.release()

        threading.Thread(target=_run_collection, daemon=True).start()
    except Exception:
        _cycle_lock.release()
        raise
    return {"job_id": job_id, "status": "running"}


@app.get("/api/collect/{job_id}")
async def get_collection_job(job_id: str):
    job = _jobs.get(job_id)
    if not job:
        raise HTTPException(404, "job not found")
    return job


@app.get("/api/hosts")
async def list_hosts():
    return {"hosts": [
        {"name": h.name, "address": h.address, "target": h.target, "paths": h.paths, "type": h.type}
        for h in cfg.resolved_hosts()
    ]}


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": VERSION, "hosts": len(cfg.hosts), "cycle_running": _cycle_lock.locked()}
