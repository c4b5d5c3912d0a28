"""
Метрики Prometheus для сервиса.

Назначение:
- Экспорт /metrics
- Счётчики по репликам, lifecycle-событиям и созданию сессий
- Используется API Gateway и воркером backfill
"""

from __future__ import annotations

import time

from fastapi import FastAPI, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# =============================================================================
# СЧЁТЧИКИ И МЕТРИКИ
# =============================================================================

# Общее количество HTTP-запросов
REQUESTS_TOTAL = Counter(
    "meeting_bot_requests_total",
    "Общее количество HTTP запросов",
    ["service", "route", "method", "status"],
)

HTTP_REQUEST_LATENCY_MS = Histogram(
    "meeting_bot_http_request_latency_ms",
    "Задержка HTTP запроса (мс)",
    ["service", "route", "method"],
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
)

# Реплики из realtime-потока
TURNS_TOTAL = Counter(
    "meeting_bot_turns_total",
    "Реплики из потока бота",
    ["result"],  # appended|dropped|failed
)

WS_CONNECTIONS_ACTIVE = Gauge(
    "meeting_bot_ws_connections_active",
    "Активные WebSocket-подключения ботов",
)

LIFECYCLE_EVENTS_TOTAL = Counter(
    "meeting_bot_lifecycle_events_total",
    "Lifecycle-уведомления от провайдера ботов",
    ["result"],  # applied|noop|ignored|not_found|duplicate|invalid
)

SESSIONS_CREATED_TOTAL = Counter(
    "meeting_bot_sessions_created_total",
    "Создание сессий (бот + записи в БД)",
    ["result"],  # ok|provisioning_failed|persistence_failed
)

TRANSCRIPT_FETCH_TOTAL = Counter(
    "meeting_bot_transcript_fetch_total",
    "Загрузка финального транскрипта",
    ["source", "result"],  # source: lifecycle|backfill; result: stored|failed|not_found
)

BACKFILL_LAST_SCANNED = Gauge(
    "meeting_bot_backfill_last_scanned",
    "Сколько встреч без транскрипта проверено в последнем прогоне",
)

BACKFILL_LAST_FILLED = Gauge(
    "meeting_bot_backfill_last_filled",
    "Сколько транскриптов догружено в последнем прогоне",
)


def record_turn(result: str) -> None:
    TURNS_TOTAL.labels(result=result).inc()


def record_lifecycle_event(result: str) -> None:
    LIFECYCLE_EVENTS_TOTAL.labels(result=result).inc()


def record_session_created(result: str) -> None:
    SESSIONS_CREATED_TOTAL.labels(result=result).inc()


def record_transcript_fetch(*, source: str, result: str) -> None:
    TRANSCRIPT_FETCH_TOTAL.labels(source=source, result=result).inc()


def record_backfill_result(*, scanned: int, filled: int) -> None:
    BACKFILL_LAST_SCANNED.set(max(0, scanned))
    BACKFILL_LAST_FILLED.set(max(0, filled))


# =============================================================================
# ENDPOINT /metrics
# =============================================================================
def setup_metrics_endpoint(app: FastAPI, *, service: str = "api-gateway") -> None:
    """
    Регистрирует endpoint /metrics для Prometheus.
    """

    @app.middleware("http")
    async def http_metrics(request: Request, call_next):
        route = request.url.path
        method = request.method
        started = time.perf_counter()

        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        status_code = str(response.status_code)

        REQUESTS_TOTAL.labels(
            service=service,
            route=route,
            method=method,
            status=status_code,
        ).inc()
        HTTP_REQUEST_LATENCY_MS.labels(
            service=service,
            route=route,
            method=method,
        ).observe(elapsed_ms)
        return response

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
