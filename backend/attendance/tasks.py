from fieldops_backend.celery import app
from .services import auto_close_open_sessions


@app.task
def auto_checkout_attendance():
    return auto_close_open_sessions()
