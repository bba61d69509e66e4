"""
Prometheus metrics
"""
import time

from fastapi import FastAPI
from fastapi.responses import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

# HTTP запросы
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code']
)

# Время обработки запросов
http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Загрузки файлов
files_uploaded_total = Counter(
    'files_uploaded_total',
    'Total files uploaded',
    ['storage_backend']
)

# Размер загружаемых файлов
upload_size_bytes = Histogram(
    'upload_size_bytes',
    'Uploaded file size in bytes',
    buckets=(1024, 64 * 1024, 1024 ** 2, 10 * 1024 ** 2, 100 * 1024 ** 2, 1024 ** 3)
)

# Успешные скачивания / предпросмотры
file_accesses_total = Counter(
    'file_accesses_total',
    'Successful file content accesses',
    ['mode']  # 'attachment' или 'inline'
)

# Отказы в доступе (expired, password, not previewable, ...)
file_access_rejected_total = Counter(
    'file_access_rejected_total',
    'Rejected file accesses',
    ['reason']
)

# Ошибки хранилища
storage_errors_total = Counter(
    'storage_errors_total',
    'Storage backend errors',
    ['storage_backend', 'operation']
)

# Удалённые sweep'ом файлы
expired_files_swept_total = Counter(
    'expired_files_swept_total',
    'Expired files removed by the sweep'
)


def setup_metrics(app: FastAPI):
    """Настройка метрик для FastAPI приложения"""

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Endpoint для Prometheus метрик"""
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    @app.middleware("http")
    async def metrics_middleware(request, call_next):
        """Middleware для сбора метрик HTTP запросов"""
        method = request.method
        path = request.url.path

        if path in ["/health", "/metrics", "/favicon.ico"]:
            return await call_next(request)

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        # route template instead of raw path keeps label cardinality bounded
        route = request.scope.get("route")
        endpoint = getattr(route, "path", path)

        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=response.status_code
        ).inc()

        http_request_duration_seconds.labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

        return response


def track_upload(storage_backend: str, size: int):
    """Отслеживание загрузки файла"""
    files_uploaded_total.labels(storage_backend=storage_backend).inc()
    upload_size_bytes.observe(size)


def track_access(mode: str):
    """Отслеживание скачивания или предпросмотра"""
    file_accesses_total.labels(mode=mode).inc()


def track_rejection(reason: str):
    """Отслеживание отказа в доступе"""
    file_access_rejected_total.labels(reason=reason).inc()


def track_storage_error(storage_backend: str, operation: str):
    """Отслеживание ошибки хранилища"""
    storage_errors_total.labels(storage_backend=storage_backend, operation=operation).inc()


def track_swept(count: int):
    """Отслеживание удалённых sweep'ом файлов"""
    if count:
        expired_files_swept_total.inc(count)
