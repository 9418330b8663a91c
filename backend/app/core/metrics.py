"""Prometheus metrics for the application"""
from prometheus_client import Counter, Histogram

# Per-platform publish outcomes (status: published | failed)
posts_counter = Counter(
    'crosspost_posts_total',
    'Total number of per-platform publish attempts by final status',
    ['platform', 'status']
)

publish_duration_histogram = Histogram(
    'crosspost_publish_duration_seconds',
    'Wall time of one platform publish attempt',
    ['platform'],
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 900)
)

# OAuth callbacks (result: connected | <error flag>)
oauth_connections_counter = Counter(
    'crosspost_oauth_connections_total',
    'Total number of OAuth callback outcomes',
    ['platform', 'result']
)

video_uploads_counter = Counter(
    'crosspost_video_uploads_total',
    'Total number of video library uploads',
    ['status']
)

avatar_uploads_counter = Counter(
    'crosspost_avatar_uploads_total',
    'Total number of profile avatar uploads',
    ['status']
)
