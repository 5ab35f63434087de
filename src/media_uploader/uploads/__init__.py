"""
Upload subsystem.

Components:
- upload_models.py: data structures (UploadTask, UploadStatus, GlobalStatus)
- retry_policy.py: linear backoff decision for failed attempts
- progress.py: listener fan-out + aggregate status counts
- upload_scheduler.py: bounded worker pool that drives tasks to a terminal state
"""
