"""REST API of the optimizer, in a stateful or a stateless flavour."""

from __future__ import annotations

import json
import os
import re
import sys
from collections.abc import Callable
from typing import Any

from flask import Flask, Response, request

from inferno.manager import Manager
from inferno.optimizer import Optimizer
from inferno.solver import SolverError
from inferno.specs import (
    DEFAULT_SERVICE_CLASS_PRIORITY,
    AcceleratorCount,
    AcceleratorData,
    AcceleratorSpec,
    CapacityData,
    ModelAcceleratorPerfData,
    ModelData,
    OptimizerSpec,
    ServerData,
    ServerSpec,
    ServiceClassData,
    ServiceClassSpec,
    SpecError,
    SystemData,
    from_data_to_spec,
    to_json,
)
from inferno.system import EntityNotFoundError, System

REST_HOST_ENV_NAME = "INFERNO_HOST"
REST_PORT_ENV_NAME = "INFERNO_PORT"
DEFAULT_STATEFULL = "-F"
DEFAULT_PORT = "8080"

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _reply(payload: Any, status: int = 200) -> Response:
    return Response(json.dumps(to_json(payload), indent=4), status=status, mimetype="application/json")


def _not_found(message: str) -> Response:
    return _reply({"message": message}, 404)


def _bind(spec_type: type) -> Any:
    return from_data_to_spec(request.get_data(), spec_type)


class _State:
    def __init__(self) -> None:
        self.system = System()


def create_app(stateful: bool) -> Flask:
    """Build the optimizer application with the stateful or the stateless route set."""
    app = Flask(__name__)
    state = _State()

    @app.errorhandler(SpecError)
    def _bad_request(exc: SpecError) -> Response:
        return _reply({"message": f"binding error: {exc}"}, 400)

    def set_accelerators() -> Response:
        data = _bind(AcceleratorData)
        state.system.set_accelerators_from_spec(data)
        return _reply(data)

    def get_accelerators() -> Response:
        return _reply([acc.spec for acc in state.system.accelerators.values()])

    def get_accelerator(name: str) -> Response:
        acc = state.system.accelerator(name)
        if acc is None:
            return _not_found(f"accelerator {name} not found")
        return _reply(acc.spec)

    def add_accelerator() -> Response:
        spec = _bind(AcceleratorSpec)
        state.system.add_accelerator(spec)
        return _reply(spec)

    def remove_accelerator(name: str) -> Response:
        acc = state.system.accelerator(name)
        try:
            state.system.remove_accelerator(name)
        except EntityNotFoundError:
            return _not_found(f"accelerator {name} not found")
        return _reply(acc.spec)

    def set_capacities() -> Response:
        data = _bind(CapacityData)
        state.system.set_capacity_from_spec(data)
        return _reply(data)

    def get_capacities() -> Response:
        counts = [AcceleratorCount(type=t, count=c) for t, c in state.system.capacities.items()]
        return _reply(CapacityData(count=counts))

    def get_capacity(type_name: str) -> Response:
        count = state.system.capacity(type_name)
        if count is None:
            return _not_found(f"capacity for {type_name} not found")
        return _reply(AcceleratorCount(type=type_name, count=count))

    def set_capacity() -> Response:
        count = _bind(AcceleratorCount)
        state.system.set_count(count)
        return _reply(count)

    def remove_capacity(type_name: str) -> Response:
        count = state.system.capacity(type_name) or 0
        if not state.system.remove_capacity(type_name):
            return _not_found(f"accelerator type {type_name} not found")
        return _reply(AcceleratorCount(type=type_name, count=count))

    def set_models() -> Response:
        data = _bind(ModelData)
        state.system.set_models_from_spec(data)
        return _reply(data)

    def get_models() -> Response:
        return _reply([model.name for model in state.system.models.values()])

    def get_model(name: str) -> Response:
        model = state.system.model(name)
        if model is None:
            return _not_found(f"model {name} not found")
        return _reply(model.spec())

    def add_model(name: str) -> Response:
        state.system.add_model(name)
        return _reply(name)

    def remove_model(name: str) -> Response:
        try:
            state.system.remove_model(name)
        except EntityNotFoundError:
            return _not_found(f"model {name} not found")
        return _reply(name)

    def set_service_classes() -> Response:
        data = _bind(ServiceClassData)
        state.system.set_service_classes_from_spec(data)
        return _reply(data)

    def get_service_classes() -> Response:
        specs = [spec for svc in state.system.service_classes.values() for spec in svc.spec()]
        return _reply(ServiceClassData(spec=specs))

    def get_service_class(name: str) -> Response:
        svc = state.system.service_class(name)
        if svc is None:
            return _not_found(f"service class {name} not found")
        return _reply(svc.spec())

    def add_service_class(name: str, priority: str) -> Response:
        value = DEFAULT_SERVICE_CLASS_PRIORITY
        if priority:
            if not _INTEGER.fullmatch(priority):
                return _reply({"message": f"service class priority {priority} invalid"}, 400)
            value = int(priority)
        state.system.add_service_class(name, value)
        return _reply(state.system.service_class(name).spec())

    def remove_service_class(name: str) -> Response:
        svc = state.system.service_class(name)
        try:
            state.system.remove_service_class(name)
        except EntityNotFoundError:
            return _not_found(f"service class {name} not found")
        return _reply(svc.spec())

    def _target_reply(name: str, model: str, remove: bool) -> Response:
        svc = state.system.service_class(name)
        if svc is None:
            return _not_found(f"service class {name} not found")
        target = svc.model_target(model)
        if target is None:
            return _not_found(f"model {model} not found")
        if remove:
            svc.remove_model_target(model)
        return _reply(
            ServiceClassSpec(name=name, model=model, slo_itl=target.itl, slo_ttw=target.ttw, slo_tps=target.tps)
        )

    def get_service_class_model_target(name: str, model: str) -> Response:
        return _target_reply(name, model, remove=False)

    def add_service_class_model_target() -> Response:
        spec = _bind(ServiceClassSpec)
        if state.system.service_class(spec.name) is None:
            state.system.add_service_class(spec.name, spec.priority)
        state.system.service_class(spec.name).set_target(spec)
        return _reply(spec)

    def remove_service_class_model_target(name: str, model: str) -> Response:
        return _target_reply(name, model, remove=True)

    def set_servers() -> Response:
        data = _bind(ServerData)
        state.system.set_servers_from_spec(data)
        return _reply(data)

    def get_servers() -> Response:
        return _reply(ServerData(spec=[server.spec for server in state.system.servers.values()]))

    def get_server(name: str) -> Response:
        server = state.system.server(name)
        if server is None:
            return _not_found(f"server {name} not found")
        return _reply(server.spec)

    def add_server() -> Response:
        spec = _bind(ServerSpec)
        state.system.add_server(spec)
        return _reply(spec)

    def remove_server(name: str) -> Response:
        server = state.system.server(name)
        try:
            state.system.remove_server(name)
        except EntityNotFoundError:
            return _not_found(f"server {name} not found")
        return _reply(server.spec)

    def _perf_reply(name: str, acc: str, remove: bool) -> Response:
        model = state.system.model(name)
        if model is None:
            return _not_found(f"model {name} not found")
        perf = model.perf_data(acc)
        if perf is None:
            return _not_found(f"accelerator {acc} not found")
        if remove:
            model.remove_perf_data(acc)
        return _reply(perf)

    def get_model_accelerator_perf(name: str, acc: str) -> Response:
        return _perf_reply(name, acc, remove=False)

    def add_model_accelerator_perf() -> Response:
        perf = _bind(ModelAcceleratorPerfData)
        model = state.system.model(perf.name)
        if model is None:
            return _not_found(f"model {perf.name} not found")
        model.add_perf_data(perf)
        return _reply(perf)

    def remove_model_accelerator_perf(name: str, acc: str) -> Response:
        return _perf_reply(name, acc, remove=True)

    def _run_optimizer(spec: OptimizerSpec) -> Response:
        system = state.system
        manager = Manager(system, Optimizer(spec))
        system.calculate()
        try:
            manager.optimize()
        except SolverError as exc:
            return _not_found(f"optimization error: {exc}")
        solution = system.generate_solution()
        print(system)
        return _reply(solution)

    def optimize() -> Response:
        return _run_optimizer(_bind(OptimizerSpec))

    def optimize_one() -> Response:
        data = _bind(SystemData)
        state.system = System()
        return _run_optimizer(state.system.set_from_spec(data.spec))

    def apply_allocation() -> Response:
        for server in state.system.servers.values():
            server.apply_desired_alloc()
        return _reply("Done")

    queries: list[tuple[str, str, Callable[..., Response]]] = [
        ("GET", "/getAccelerators", get_accelerators),
        ("GET", "/getAccelerator/<name>", get_accelerator),
        ("GET", "/getCapacities", get_capacities),
        ("GET", "/getCapacity/<type_name>", get_capacity),
        ("GET", "/getModels", get_models),
        ("GET", "/getModel/<name>", get_model),
        ("GET", "/getServiceClasses", get_service_classes),
        ("GET", "/getServiceClass/<name>", get_service_class),
        ("GET", "/getServiceClassModelTarget/<name>/<model>", get_service_class_model_target),
        ("GET", "/getServers", get_servers),
        ("GET", "/getServer/<name>", get_server),
        ("GET", "/getModelAcceleratorPerf/<name>/<acc>", get_model_accelerator_perf),
        ("POST", "/optimizeOne", optimize_one),
    ]
    updates: list[tuple[str, str, Callable[..., Response]]] = [
        ("POST", "/setAccelerators", set_accelerators),
        ("POST", "/addAccelerator", add_accelerator),
        ("GET", "/removeAccelerator/<name>", remove_accelerator),
        ("POST", "/setCapacities", set_capacities),
        ("POST", "/setCapacity", set_capacity),
        ("GET", "/removeCapacity/<type_name>", remove_capacity),
        ("POST", "/setModels", set_models),
        ("GET", "/addModel/<name>", add_model),
        ("GET", "/removeModel/<name>", remove_model),
        ("POST", "/setServiceClasses", set_service_classes),
        ("GET", "/addServiceClass/<name>/<priority>", add_service_class),
        ("GET", "/removeServiceClass/<name>", remove_service_class),
        ("POST", "/addServiceClassModelTarget", add_service_class_model_target),
        ("GET", "/removeServiceClassModelTarget/<name>/<model>", remove_service_class_model_target),
        ("POST", "/setServers", set_servers),
        ("POST", "/addServer", add_server),
        ("GET", "/removeServer/<name>", remove_server),
        ("POST", "/addModelAcceleratorPerf", add_model_accelerator_perf),
        ("GET", "/removeModelAcceleratorPerf/<name>/<acc>", remove_model_accelerator_perf),
        ("POST", "/optimize", optimize),
        ("GET", "/applyAllocation", apply_allocation),
    ]
    routes = queries + updates if stateful else queries
    for method, path, view in routes:
        app.add_url_rule(path, endpoint=view.__name__, view_func=view, methods=[method])
    return app


def run_server(app: Flask) -> None:
    """Serve the application on the host and port taken from the environment."""
    host = os.environ.get(REST_HOST_ENV_NAME) or "0.0.0.0"
    port = os.environ.get(REST_PORT_ENV_NAME) or DEFAULT_PORT
    app.run(host=host, port=int(port))


def main(argv: list[str] | None = None) -> None:
    """Start the optimizer server: stateless, or stateful with ``-F``."""
    args = sys.argv[1:] if argv is None else argv
    stateful = bool(args) and args[0] == DEFAULT_STATEFULL
    run_server(create_app(stateful))


if __name__ == "__main__":
    main()