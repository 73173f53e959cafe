# CricketCore Gunicorn Configuration
#
# Run with: gunicorn -c gunicorn.conf.py "app:create_app()"
#
# IMPORTANT: live engines are cached in memory (MATCH_INSTANCES) and store
# subscribers are in-process.  Multiple workers would each hold their own
# copy of a match and never see each other's writes.  Must use exactly 1 worker.

bind = "127.0.0.1:5000"
workers = 1
threads = 4
timeout = 120
