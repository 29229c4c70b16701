"""Prometheus metrics for monitoring."""

from prometheus_client import Counter, Gauge, Histogram

# Queue metrics
queue_joins_total = Counter("queue_joins_total", "Total number of queue joins", ["outcome"])  # matched, queued, requeued

queue_leaves_total = Counter("queue_leaves_total", "Total number of queue leaves")

pairing_claim_conflicts_total = Counter(
    "pairing_claim_conflicts_total", "Candidates lost to a concurrent joiner during claim or verify", ["stage"]
)

# Session metrics
chat_sessions_created_total = Counter(
    "chat_sessions_created_total", "Total number of chat sessions created", ["origin"]
)  # queue, request

chat_sessions_ended_total = Counter("chat_sessions_ended_total", "Total number of chat sessions ended", ["reason"])

decisions_total = Counter("decisions_total", "Total number of continue decisions recorded", ["choice"])

skip_votes_total = Counter("skip_votes_total", "Total number of skip-to-reveal votes")

sessions_swept_total = Counter("sessions_swept_total", "Speed dating sessions moved to reveal by the sweeper")

# Match metrics
matches_created_total = Counter("matches_created_total", "Total number of matches created", ["path"])  # decision, skip

# Chat request metrics
chat_requests_total = Counter("chat_requests_total", "Chat request lifecycle events", ["action"])

# Message metrics
messages_sent_total = Counter("messages_sent_total", "Total number of messages stored")

messages_rate_limited_total = Counter("messages_rate_limited_total", "Messages rejected by the rate limiter")

messages_erased_total = Counter("messages_erased_total", "Messages deleted by privacy erasure")

# Users
users_created_total = Counter("users_created_total", "Total number of directory records created", ["source"])

match_queue_size = Gauge("match_queue_size", "Users waiting in the queue at the last join/leave")

# Response time metrics
api_request_duration = Histogram(
    "api_request_duration_seconds", "API request duration in seconds", ["method", "endpoint", "status"]
)
