from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path

from confluent_kafka import Producer
from prometheus_client import start_http_server

from apps.radar.config import get_settings
from apps.radar.declarations import load_declarations
from apps.radar.models import node_ref
from apps.radar.pipeline import DiscoveryPipeline, PassResult
from apps.radar.records import relation_record, to_record

LOGGER = logging.getLogger('chainradar.crawler')


@dataclass
class Settings:
    service_name: str
    kafka_bootstrap_servers: str
    nodes_topic: str
    declarations_path: Path
    pass_interval_seconds: int
    metrics_port: int | None


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _declarations_path() -> Path:
    path = Path(os.getenv('RADAR_DECLARATIONS_PATH', 'data/declarations.json'))
    if path.is_absolute():
        return path
    return _repo_root() / path


def _settings_from_env() -> Settings:
    try:
        interval = int(os.getenv('RADAR_PASS_INTERVAL_SECONDS', '600'))
    except ValueError:
        interval = 600

    metrics_port_env = os.getenv('METRICS_PORT', '').strip()
    metrics_port = int(metrics_port_env) if metrics_port_env.isdigit() else None

    return Settings(
        service_name=os.getenv('SERVICE_NAME', 'chainradar-crawler'),
        kafka_bootstrap_servers=os.getenv('KAFKA_BOOTSTRAP_SERVERS', 'localhost:9092'),
        nodes_topic=os.getenv('RADAR_NODES_TOPIC', 'chainradar.nodes.v1'),
        declarations_path=_declarations_path(),
        pass_interval_seconds=max(1, interval),
        metrics_port=metrics_port
    )


class Crawler:
    def __init__(self, settings: Settings, pipeline: DiscoveryPipeline | None = None, producer: Producer | None = None) -> None:
        self.settings = settings
        self.pipeline = pipeline or DiscoveryPipeline(settings=get_settings())
        self.producer = producer or Producer(
            {
                'bootstrap.servers': settings.kafka_bootstrap_servers,
                'client.id': settings.service_name
            }
        )

    def load(self) -> int:
        declarations = load_declarations(self.settings.declarations_path)
        self.pipeline.declare(declarations)
        return len(declarations)

    async def run_once(self) -> PassResult:
        declared = self.load()
        result = await self.pipeline.run_pass()
        for error in result.errors:
            LOGGER.warning('stage error ref=%s stage=%s message=%s', error['ref'], error['stage'], error['message'])
        published = self.publish()
        LOGGER.info('pass published declared=%s records=%s errors=%s', declared, published, len(result.errors))
        return result

    def publish(self) -> int:
        pass_id = str(uuid.uuid4())
        headers = [('pass_id', pass_id.encode('utf-8'))]
        count = 0
        for node in self.pipeline.catalog.nodes():
            self.producer.produce(
                topic=self.settings.nodes_topic,
                key=node_ref(node),
                value=json.dumps(to_record(node), sort_keys=True).encode('utf-8'),
                headers=[*headers, ('record_type', b'entity')]
            )
            count += 1
        for relation in self.pipeline.catalog.relations():
            self.producer.produce(
                topic=self.settings.nodes_topic,
                key=f'{relation.source}:{relation.type}:{relation.target}',
                value=json.dumps(relation_record(relation), sort_keys=True).encode('utf-8'),
                headers=[*headers, ('record_type', b'relation')]
            )
            count += 1
        self.producer.poll(0)
        return count

    async def run(self) -> None:
        LOGGER.info(
            'starting service=%s topic=%s declarations=%s interval=%ss',
            self.settings.service_name,
            self.settings.nodes_topic,
            self.settings.declarations_path,
            self.settings.pass_interval_seconds
        )
        try:
            while True:
                try:
                    await self.run_once()
                except Exception:
                    LOGGER.exception('crawler pass failed')
                self.producer.poll(0)
                await asyncio.sleep(self.settings.pass_interval_seconds)
        finally:
            await self.pipeline.context.adapters.aclose()
            self.producer.flush(5)


def main() -> None:
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    settings = _settings_from_env()
    if settings.metrics_port is not None:
        start_http_server(settings.metrics_port)
    asyncio.run(Crawler(settings).run())


if __name__ == '__main__':
    main()
