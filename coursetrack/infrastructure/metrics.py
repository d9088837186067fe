from prometheus_client import Counter, Histogram, CONTENT_TYPE_LATEST, generate_latest
from fastapi import Response

# Метрики для HTTP запросов
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Метрики для кэша
cache_hits_total = Counter('cache_hits_total', 'Total cache hits')
cache_misses_total = Counter('cache_misses_total', 'Total cache misses')

db_queries_total = Counter('db_queries_total', 'Total database queries')

progress_toggles_total = Counter(
    'progress_toggles_total',
    'Completion toggles by resulting state',
    ['result']
)
progress_conflicts_total = Counter(
    'progress_conflicts_total',
    'Toggles that lost a creation race and converged through the retry'
)


def metrics_endpoint():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
