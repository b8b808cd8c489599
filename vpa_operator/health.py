from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

app = FastAPI(title="VPA Operator Health")


@app.get("/livez")
def liveness():
    """ Liveness probe: the process is up. """
    return JSONResponse(content={"status": "ok"})


@app.get("/healthz", status_code=204)
def healthz():
    return Response(status_code=204)


@app.get("/readyz", status_code=204)
def readyz():
    return Response(status_code=204)


@app.get("/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
