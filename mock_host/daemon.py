"""
mock_host.daemon
----------------
A mock host deployment service REST API using FastAPI.
It keeps an in-memory catalog of startable units and the instances
started from it. Intended for local development, testing,
and demonstration purposes.
"""
import json
import logging
import socket
import uuid

import typer
import uvicorn
from fastapi import Body, FastAPI, HTTPException
from pydantic import BaseModel, Field

from common.app_setup import print_error, setup_logging

logger = logging.getLogger(__name__)


# Pydantic model for catalog entries
class UnitModel(BaseModel):
    name: str = Field(..., min_length=1)
    fail: bool = Field(default=False, description="Starting this unit always fails")
    error: str = Field(default="unit failed to initialize")


class InstanceModel(BaseModel):
    instanceId: str
    name: str
    options: dict = Field(default_factory=dict)


# In-memory stores
catalog: dict[str, UnitModel] = {}
instances: dict[str, InstanceModel] = {}

app = FastAPI()


def reset_state() -> None:
    """Forget every catalog entry and instance."""
    catalog.clear()
    instances.clear()


def attached_server() -> uvicorn.Server | None:
    """The uvicorn server currently serving ``app``, if any."""
    return getattr(app.state, "server", None)


@app.post("/shutdown")
def request_shutdown():
    """Ask the serving uvicorn server to exit once in-flight requests finish."""
    server = attached_server()
    if server is None:
        logger.info("Shutdown requested but the app is not served by uvicorn")
        return {"stopping": False}
    logger.info("Shutdown requested, %d instance(s) started so far", len(instances))
    server.should_exit = True
    return {"stopping": True}


@app.get("/status")
def status():
    """Report liveness plus catalog and instance counts."""
    server = attached_server()
    stopping = server is not None and server.should_exit
    return {"status": "shutting_down" if stopping else "ok", "units": len(catalog), "instances": len(instances)}


@app.post("/units", response_model=UnitModel, status_code=201)
def register_unit(unit: UnitModel) -> UnitModel:
    """Add (or replace) a startable unit in the catalog."""
    if not unit.name.strip():
        raise HTTPException(status_code=422, detail="Missing or invalid 'name' field")
    catalog[unit.name] = unit
    logger.info(f"Registered unit: {unit.name!r} (fail={unit.fail})")
    return unit


@app.get("/units", response_model=list[UnitModel])
def list_units() -> list[UnitModel]:
    return list(catalog.values())


@app.post("/units/{name:path}/start", response_model=InstanceModel, status_code=201)
def start_unit(name: str, options: dict | None = Body(default=None)) -> InstanceModel:
    """Start one instance of a catalog unit; options are stored as given."""
    unit = catalog.get(name)
    if unit is None:
        logger.warning(f"Unit not found: {name!r}")
        raise HTTPException(status_code=404, detail=f"unit not found: {name}")
    if unit.fail:
        logger.warning(f"Unit {name!r} failed to start: {unit.error}")
        raise HTTPException(status_code=500, detail=unit.error)
    instance = InstanceModel(instanceId=str(uuid.uuid4()), name=name, options=options or {})
    instances[instance.instanceId] = instance
    logger.info(f"Started unit {name!r} as {instance.instanceId}")
    return instance


@app.get("/instances", response_model=list[InstanceModel])
def list_instances(name: str | None = None) -> list[InstanceModel]:
    """List started instances, optionally only those of unit ``name``."""
    if not name:
        return list(instances.values())
    return [i for i in instances.values() if i.name == name]


class PortInUse(OSError):
    """An explicitly requested port cannot be bound."""


def select_port(port: int | None = None, host: str = "127.0.0.1") -> int:
    """
    Return the port to serve on.

    None or 0 lets the OS pick a free port. An explicit port is returned
    unchanged once it is known to be bindable; PortInUse otherwise.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port or 0))
        except OSError as exc:
            raise PortInUse(f"Port {port} on {host} is not available: {exc.strerror or exc}") from exc
        return sock.getsockname()[1]


def serve(server: uvicorn.Server) -> None:
    """Run ``server`` until /shutdown or Ctrl-C; /shutdown can reach it meanwhile."""
    app.state.server = server
    logger.info("Mock host listening on %s:%s", server.config.host, server.config.port)
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        app.state.server = None
    logger.info("Mock host stopped")


app_cli = typer.Typer()


@app_cli.command()
def run(
    port: int = typer.Option(0, help="Port to listen on (0 picks a free one)"),
    host: str = typer.Option("127.0.0.1", help="Interface to bind"),
    logfile: str = typer.Option(None, help="Log to this file instead of syslog"),
):
    """Serve the mock host with uvicorn, announcing the port as a JSON line on stdout."""
    setup_logging(app_name="stagedeploy-mockhost", daemon=logfile is None, logfile=logfile)
    try:
        chosen = select_port(port, host)
    except PortInUse as exc:
        print_error(str(exc))
        raise typer.Exit(code=98)  # EADDRINUSE
    typer.echo(json.dumps({"event": "port_used" if port else "port_selected", "host": host, "port": chosen}))
    # log_config=None: uvicorn logs through the handlers set up above
    serve(uvicorn.Server(uvicorn.Config(app, host=host, port=chosen, log_config=None)))


if __name__ == "__main__":
    app_cli()
