from fieldops_backend.celery import app


@app.task
def ping():
    return "pong"
