"""Cluster lifecycle on kind.

``KindCluster`` installs, brings up, and tears down a simulated cluster
whose control plane is a single kind node. Auxiliary components run as
static pods whose manifests live in the working directory, which is
mounted as the node's manifest directory. A component is stopped by
moving its manifest out of that directory and started by moving it back.
"""

from __future__ import annotations

import json
import math
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

import yaml

from ..components.builders import (
    LOCAL_ADDRESS,
    DashboardConfig,
    JaegerConfig,
    KwokControllerConfig,
    PrometheusConfig,
    build_control_plane_component,
    build_dashboard_component,
    build_jaeger_component,
    build_kwok_controller_component,
    build_prometheus_component,
)
from ..components.model import (
    COMPONENT_DASHBOARD,
    COMPONENT_ETCD,
    COMPONENT_JAEGER,
    COMPONENT_KUBE_APISERVER,
    COMPONENT_KUBE_CONTROLLER_MANAGER,
    COMPONENT_KUBE_SCHEDULER,
    COMPONENT_KWOK_CONTROLLER,
    COMPONENT_PROMETHEUS,
    SYSTEM_NAMESPACE,
    Component,
    ComponentPatch,
    Volume,
    apply_patch,
    convert_to_pod,
    expand_volume_host_paths,
    get_component_patch,
)
from ..components.prometheus import build_prometheus_config
from ..config import ClusterConfig, ClusterOptions, parse_feature_gates, parse_runtime_config
from ..errors import ExternalCommandFailed, KindsimError, annotate, is_not_found
from ..runtime import dryrun
from ..runtime.executor import Executor
from ..runtime.wait import poll
from ..shared.logging import current_verbosity, get_logger
from ..shared.paths import (
    APISERVER_TRACING_CONFIG_NAME,
    AUDIT_LOG_NAME,
    AUDIT_POLICY_NAME,
    KIND_CONFIG_NAME,
    LOGS_NAME,
    MANIFESTS_NAME,
    PKI_NAME,
    PROMETHEUS_CONFIG_NAME,
    SCHEDULER_CONFIG_NAME,
)
from ..version import parse_version
from . import diagnostics
from .base import Cluster
from .images import ImageLoader, list_all_images, provider_env
from .kindconfig import (
    JAEGER_OTLP_GRPC_PORT,
    KindConfigParams,
    build_kind_config,
    build_tracing_config,
    node_volume_path,
    rewrite_scheduler_config,
)
from .pki import generate_pki, local_addresses

logger = get_logger(__name__)

# Seconds a component gets to appear or disappear after its manifest moves
COMPONENT_WAIT_TIMEOUT = 120.0
DEFAULT_UP_WAIT = "1m"
READY_CONTINUE_ON_ERROR = 10
READY_INTERVAL = 0.5

# Paths inside the kind node
NODE_KUBECONFIG_PATH = "/etc/kubernetes/admin.conf"
NODE_PKI_PATH = "/etc/kubernetes/pki"
NODE_MANIFESTS_PATH = "/etc/kubernetes/manifests"
NODE_DISABLED_MANIFESTS_PATH = "/etc/kubernetes"


@dataclass(frozen=True)
class CriticalComponents:
    """Components exempt from state probing.

    Stopping the API server removes the only way to query component state,
    and etcd takes the API server down with it, so once their manifest has
    moved the operation is complete.
    """

    on_start: frozenset[str] = frozenset({COMPONENT_ETCD})
    on_stop: frozenset[str] = frozenset({COMPONENT_ETCD, COMPONENT_KUBE_APISERVER})


DEFAULT_CRITICAL_COMPONENTS = CriticalComponents()


@dataclass
class InstallEnv:
    """State shared by the install steps."""

    config: ClusterConfig
    verbosity: int
    ca_cert_path: str = f"{NODE_PKI_PATH}/ca.crt"
    admin_cert_path: str = f"{NODE_PKI_PATH}/admin.crt"
    admin_key_path: str = f"{NODE_PKI_PATH}/admin.key"
    kubeconfig_path: str = NODE_KUBECONFIG_PATH
    audit_policy_path: Path | None = None
    audit_log_path: Path | None = None

    @property
    def options(self) -> ClusterOptions:
        return self.config.options

    def patch(self, name: str) -> ComponentPatch:
        return get_component_patch(self.config.component_patches, name)


class KindCluster(Cluster):
    """Cluster running on kind with docker, podman or nerdctl."""

    def __init__(
        self,
        name: str,
        workdir: str | Path,
        runtime: str = "docker",
        executor: Executor | None = None,
        dry_run: bool = False,
        critical: CriticalComponents = DEFAULT_CRITICAL_COMPONENTS,
    ):
        """Initialize cluster.

        Args:
            name: Cluster name.
            workdir: Working directory.
            runtime: Container runtime kind runs its node with.
            executor: Executor for external commands.
            dry_run: Print actions instead of performing them.
            critical: Components exempt from state probing.
        """
        super().__init__(name, workdir, executor=executor, dry_run=dry_run)
        self.runtime = runtime
        self.critical = critical

    @property
    def node_name(self) -> str:
        return f"{self.name}-control-plane"

    def component_pod_name(self, name: str) -> str:
        """Static pods are named after their node."""
        return f"{name}-{self.node_name}"

    async def available(self) -> None:
        """Check that the container runtime answers."""
        await self.executor.run(self.runtime, "version")

    async def kind_path(self) -> str:
        return await self.ensure_binary("kind", self.config().options.kind_binary)

    # Install

    async def install(self) -> None:
        """Write all static state and pull images.

        Safe to re-run: the component list is rebuilt and files are
        overwritten.
        """
        await super().install()
        config = self.config()
        config.components = []
        env = InstallEnv(config=config, verbosity=current_verbosity())
        if config.options.kube_audit_policy:
            env.audit_policy_path = self.workdir_path(AUDIT_POLICY_NAME)
            env.audit_log_path = self.workdir_path(LOGS_NAME, AUDIT_LOG_NAME)

        steps = (
            self._setup_pki,
            self._add_kind,
            self._add_etcd,
            self._add_kube_apiserver,
            self._add_kube_controller_manager,
            self._add_kube_scheduler,
            self._add_kwok_controller,
            self._add_dashboard,
            self._add_prometheus,
            self._add_jaeger,
            self._setup_prometheus_config,
        )
        for step in steps:
            try:
                await step(env)
            except Exception as e:
                annotate(e, f"install step {step.__name__.lstrip('_')}")
                raise

        await self.save()

        options = config.options
        images = [options.kind_node_image, *list_all_images(options)]
        await self.pull_images(self.runtime, images, options.quiet_pull)

    async def _setup_pki(self, env: InstallEnv) -> None:
        pki = self.workdir_path(PKI_NAME)
        if not pki.exists():
            sans = [*local_addresses(), *env.options.kube_apiserver_cert_sans]
            await self.mkdir(pki)
            await generate_pki(self.executor, pki, sans)
        await self.mkdir(pki / "etcd")

    async def _add_kind(self, env: InstallEnv) -> None:
        options = env.options
        await self.mkdir(self.workdir_path(MANIFESTS_NAME))

        if env.audit_policy_path and env.audit_log_path:
            await self.mkdir(self.workdir_path(LOGS_NAME))
            await self.create_file(env.audit_log_path)
            await self.copy_file(Path(options.kube_audit_policy), env.audit_policy_path)

        scheduler_config_path = None
        if not options.disable_kube_scheduler and options.kube_scheduler_config:
            scheduler_config_path = self.workdir_path(SCHEDULER_CONFIG_NAME)
            data = Path(options.kube_scheduler_config).read_text()
            await self.write_file(scheduler_config_path, rewrite_scheduler_config(data))

        kube_version = parse_version(options.kube_version)
        tracing_config_path = None
        if options.jaeger_port:
            tracing_config_path = self.workdir_path(APISERVER_TRACING_CONFIG_NAME)
            endpoint = f"{options.bind_address}:{JAEGER_OTLP_GRPC_PORT}"
            await self.write_file(tracing_config_path, build_tracing_config(endpoint, kube_version))

        control_plane_patches = {}
        for name in (
            COMPONENT_ETCD,
            COMPONENT_KUBE_APISERVER,
            COMPONENT_KUBE_SCHEDULER,
            COMPONENT_KUBE_CONTROLLER_MANAGER,
        ):
            patch = env.patch(name)
            if patch.extra_envs:
                logger.warning("extraEnvs is not supported in kind, ignoring", component=name)
            patch.extra_volumes = expand_volume_host_paths(patch.extra_volumes)
            control_plane_patches[name] = patch

        component_volumes = {
            COMPONENT_KWOK_CONTROLLER: expand_volume_host_paths(
                env.patch(COMPONENT_KWOK_CONTROLLER).extra_volumes
            ),
        }
        if options.prometheus_port:
            component_volumes[COMPONENT_PROMETHEUS] = [
                *expand_volume_host_paths(env.patch(COMPONENT_PROMETHEUS).extra_volumes),
                Volume(
                    host_path=str(self.workdir_path(PROMETHEUS_CONFIG_NAME)),
                    mount_path="/etc/prometheus/prometheus.yaml",
                    read_only=True,
                ),
            ]
        if options.jaeger_port:
            component_volumes[COMPONENT_JAEGER] = expand_volume_host_paths(
                env.patch(COMPONENT_JAEGER).extra_volumes
            )
        if options.dashboard_port:
            component_volumes[COMPONENT_DASHBOARD] = expand_volume_host_paths(
                env.patch(COMPONENT_DASHBOARD).extra_volumes
            )

        params = KindConfigParams(
            workdir=self.workdir,
            kube_version=kube_version,
            bind_address=options.bind_address,
            kube_apiserver_port=options.kube_apiserver_port,
            etcd_port=options.etcd_port,
            kwok_controller_port=options.kwok_controller_port,
            dashboard_port=options.dashboard_port,
            prometheus_port=options.prometheus_port,
            jaeger_port=options.jaeger_port,
            feature_gates=parse_feature_gates(options.kube_feature_gates),
            runtime_config=parse_runtime_config(options.kube_runtime_config),
            audit_policy_path=env.audit_policy_path,
            audit_log_path=env.audit_log_path,
            scheduler_config_path=scheduler_config_path,
            tracing_config_path=tracing_config_path,
            disable_qps_limits=options.disable_qps_limits,
            verbosity=env.verbosity,
            control_plane_patches=control_plane_patches,
            component_volumes=component_volumes,
        )
        await self.write_file(self.workdir_path(KIND_CONFIG_NAME), build_kind_config(params))

    async def _add_etcd(self, env: InstallEnv) -> None:
        env.config.components.append(
            build_control_plane_component(
                COMPONENT_ETCD,
                f"{LOCAL_ADDRESS}:2379",
                f"{NODE_PKI_PATH}/apiserver-etcd-client.crt",
                f"{NODE_PKI_PATH}/apiserver-etcd-client.key",
            )
        )

    async def _add_kube_apiserver(self, env: InstallEnv) -> None:
        env.config.components.append(
            build_control_plane_component(
                COMPONENT_KUBE_APISERVER,
                f"{LOCAL_ADDRESS}:6443",
                env.admin_cert_path,
                env.admin_key_path,
            )
        )

    async def _add_kube_controller_manager(self, env: InstallEnv) -> None:
        if env.options.disable_kube_controller_manager:
            return
        env.config.components.append(
            build_control_plane_component(
                COMPONENT_KUBE_CONTROLLER_MANAGER,
                f"{LOCAL_ADDRESS}:10257",
                env.admin_cert_path,
                env.admin_key_path,
            )
        )

    async def _add_kube_scheduler(self, env: InstallEnv) -> None:
        if env.options.disable_kube_scheduler:
            return
        env.config.components.append(
            build_control_plane_component(
                COMPONENT_KUBE_SCHEDULER,
                f"{LOCAL_ADDRESS}:10259",
                env.admin_cert_path,
                env.admin_key_path,
            )
        )

    def _patched(self, env: InstallEnv, component: Component) -> Component:
        """Merge the component's patch, mounting patch volumes from the node."""
        patch = env.patch(component.name)
        patch.extra_volumes = [
            Volume(
                host_path=node_volume_path(component.name, volume.mount_path),
                mount_path=volume.mount_path,
                read_only=volume.read_only,
                name=volume.name,
            )
            for volume in patch.extra_volumes
        ]
        return apply_patch(component, patch)

    async def _write_manifest(self, name: str, pod: dict[str, Any]) -> None:
        data = yaml.safe_dump(pod, default_flow_style=False, sort_keys=False)
        await self.write_file(self.workdir_path(MANIFESTS_NAME, f"{name}.yaml"), data)

    async def _add_kwok_controller(self, env: InstallEnv) -> None:
        options = env.options
        version = await self.parse_version_from_image(
            self.runtime, options.kwok_controller_image, "kwok"
        )
        component = build_kwok_controller_component(
            KwokControllerConfig(
                image=options.kwok_controller_image,
                version=version,
                kubeconfig_path=env.kubeconfig_path,
                ca_cert_path=env.ca_cert_path,
                admin_cert_path=env.admin_cert_path,
                admin_key_path=env.admin_key_path,
                port=options.kwok_controller_port,
                enable_crds=list(options.enable_crds),
            )
        )
        component = self._patched(env, component)

        pod = convert_to_pod(component)
        pod["spec"]["containers"][0].setdefault("env", []).append(
            {"name": "POD_IP", "valueFrom": {"fieldRef": {"fieldPath": "status.podIP"}}}
        )
        await self._write_manifest(COMPONENT_KWOK_CONTROLLER, pod)
        env.config.components.append(component)

    async def _add_dashboard(self, env: InstallEnv) -> None:
        options = env.options
        if not options.dashboard_port:
            return
        version = await self.parse_version_from_image(self.runtime, options.dashboard_image)
        component = build_dashboard_component(
            DashboardConfig(
                image=options.dashboard_image,
                version=version,
                kubeconfig_path=env.kubeconfig_path,
                ca_cert_path=env.ca_cert_path,
                admin_cert_path=env.admin_cert_path,
                admin_key_path=env.admin_key_path,
                port=options.dashboard_port,
                banner=f"Welcome to {self.name}",
            )
        )
        component = self._patched(env, component)
        await self._write_manifest(COMPONENT_DASHBOARD, convert_to_pod(component))
        env.config.components.append(component)

    async def _add_prometheus(self, env: InstallEnv) -> None:
        options = env.options
        if not options.prometheus_port:
            return
        version = await self.parse_version_from_image(self.runtime, options.prometheus_image)
        component = build_prometheus_component(
            PrometheusConfig(
                image=options.prometheus_image,
                version=version,
                config_path=node_volume_path(COMPONENT_PROMETHEUS, "/etc/prometheus/prometheus.yaml"),
                admin_cert_path=env.admin_cert_path,
                admin_key_path=env.admin_key_path,
                port=options.prometheus_port,
                verbosity=env.verbosity,
            )
        )
        component = self._patched(env, component)
        for suffix in ("crt", "key"):
            path = f"{NODE_PKI_PATH}/apiserver-etcd-client.{suffix}"
            component.volumes.append(Volume(host_path=path, mount_path=path, read_only=True))
        await self._write_manifest(COMPONENT_PROMETHEUS, convert_to_pod(component))
        env.config.components.append(component)

    async def _add_jaeger(self, env: InstallEnv) -> None:
        options = env.options
        if not options.jaeger_port:
            return
        version = await self.parse_version_from_image(self.runtime, options.jaeger_image)
        component = build_jaeger_component(
            JaegerConfig(image=options.jaeger_image, version=version, port=options.jaeger_port)
        )
        component = self._patched(env, component)
        await self._write_manifest(COMPONENT_JAEGER, convert_to_pod(component))
        env.config.components.append(component)

    async def _setup_prometheus_config(self, env: InstallEnv) -> None:
        if not env.options.prometheus_port:
            return
        data = build_prometheus_config(env.config.components)
        await self.write_file(self.workdir_path(PROMETHEUS_CONFIG_NAME), data)

    # Up / Down

    async def up(self, wait: float | None = None) -> None:
        """Create the kind cluster and load images into it.

        Args:
            wait: Seconds kind waits for the control plane. One minute
                when unset or not positive.
        """
        config = self.config()
        options = config.options

        await self.save()

        kind = await self.kind_path()
        images = list_all_images(options)

        wait_arg = f"{math.ceil(wait)}s" if wait and wait > 0 else DEFAULT_UP_WAIT
        await self.executor.run(
            kind,
            "create",
            "cluster",
            "--config",
            str(self.workdir_path(KIND_CONFIG_NAME)),
            "--name",
            self.name,
            "--image",
            options.kind_node_image,
            "--wait",
            wait_arg,
            env=provider_env(self.runtime),
            stdout=sys.stderr,
            combined=True,
        )

        loader = ImageLoader(self.executor, self.runtime, kind, self.name, options.cache_dir)
        await loader.load(images)

        await self._fill_kubeconfig_context_server(options.bind_address)

        kubeconfig = await self.kubectl_output("config", "view", "--minify=true", "--raw=true")
        await self.write_file(self.in_host_kubeconfig(), kubeconfig)

        # Keep simulated pods off the real node
        try:
            await self.kubectl("cordon", self.node_name)
        except ExternalCommandFailed as e:
            logger.error("Failed to cordon node", node=self.node_name, err=str(e))

        for disabled, name in (
            (options.disable_kube_scheduler, COMPONENT_KUBE_SCHEDULER),
            (options.disable_kube_controller_manager, COMPONENT_KUBE_CONTROLLER_MANAGER),
        ):
            if not disabled:
                continue
            try:
                await self.stop_component(name)
            except KindsimError as e:
                logger.error("Failed to disable component", component=name, err=str(e))

    async def _fill_kubeconfig_context_server(self, bind_address: str) -> None:
        """Rewrite a ``0.0.0.0`` API server address to the loopback address."""
        if bind_address != "0.0.0.0":
            return
        cluster_name = f"kind-{self.name}"
        jsonpath = f'{{.clusters[?(@.name=="{cluster_name}")].cluster.server}}'
        server = (await self.kubectl_output("config", "view", f"--output=jsonpath={jsonpath}")).decode()
        server = server.strip()
        if "0.0.0.0" not in server:
            return
        fixed = server.replace("0.0.0.0", LOCAL_ADDRESS, 1)
        await self.kubectl("config", "set", f"clusters.{cluster_name}.server", fixed)

    async def down(self) -> None:
        """Delete the kind cluster. Deletion failures are only logged."""
        kind = await self.kind_path()
        try:
            await self.executor.run(
                kind,
                "delete",
                "cluster",
                "--name",
                self.name,
                env=provider_env(self.runtime),
                stdout=sys.stderr,
                combined=True,
            )
        except ExternalCommandFailed as e:
            logger.error("Failed to delete cluster", cluster=self.name, err=str(e))

    async def start(self) -> None:
        await self.executor.run(self.runtime, "start", self.node_name)

    async def stop(self) -> None:
        await self.executor.run(self.runtime, "stop", self.node_name)

    # Readiness

    async def ready(self) -> bool:
        """Ready once the API server is healthy and every system pod runs."""
        if not await super().ready():
            return False
        out = await self.kubectl_in_cluster_output(
            "get",
            "pod",
            f"--namespace={SYSTEM_NAMESPACE}",
            "--field-selector=status.phase!=Running",
            "--output=json",
        )
        pods = json.loads(out).get("items") or []
        if pods:
            logger.debug(
                "Components not all running",
                components=[
                    f"{p['metadata']['name']}={(p.get('status') or {}).get('phase')}" for p in pods
                ],
            )
            return False
        return True

    async def wait_ready(self, timeout: float) -> None:
        """Wait until the cluster is ready.

        Raises:
            WaitTimeoutError: The cluster was not ready within ``timeout``.
        """
        if self.dry_run:
            return
        await poll(
            self.ready,
            timeout=timeout,
            interval=READY_INTERVAL,
            continue_on_error=READY_CONTINUE_ON_ERROR,
        )

    # Components

    async def start_component(self, name: str) -> None:
        """Move a component's manifest back into the active directory."""
        log = logger.bind(component=name)
        critical = name in self.critical.on_start
        if not critical and not self.dry_run:
            exists, _ = await self._inspect_component(name)
            if exists:
                log.debug("Component already started")
                return

        log.debug("Starting component")
        await self._move_manifest(
            f"{NODE_DISABLED_MANIFESTS_PATH}/{name}.yaml.bak",
            f"{NODE_MANIFESTS_PATH}/{name}.yaml",
        )
        if critical or self.dry_run:
            return
        await self._wait_component(name, want_ready=True, timeout=COMPONENT_WAIT_TIMEOUT)

    async def stop_component(self, name: str) -> None:
        """Move a component's manifest out of the active directory."""
        log = logger.bind(component=name)
        critical = name in self.critical.on_stop
        if not critical and not self.dry_run:
            exists, _ = await self._inspect_component(name)
            if not exists:
                log.debug("Component already stopped")
                return

        log.debug("Stopping component")
        await self._move_manifest(
            f"{NODE_MANIFESTS_PATH}/{name}.yaml",
            f"{NODE_DISABLED_MANIFESTS_PATH}/{name}.yaml.bak",
        )
        # Once etcd or kube-apiserver is stopped the cluster goes down
        if critical or self.dry_run:
            return
        await self._wait_component(name, want_ready=False, timeout=COMPONENT_WAIT_TIMEOUT)

    async def _move_manifest(self, src: str, dst: str) -> None:
        if not self.dry_run:
            try:
                await self.executor.run(self.runtime, "exec", self.node_name, "test", "-f", src)
            except ExternalCommandFailed as e:
                # test(1) exits 1 silently; runtime errors print to stderr
                if e.exit_code != 1 or e.stderr_tail:
                    raise
                logger.debug("Manifest already moved", path=src)
                return
        await self.executor.run(self.runtime, "exec", self.node_name, "mv", src, dst)

    async def _inspect_component(self, name: str) -> tuple[bool, bool]:
        """Return whether the component's pod exists and whether it is ready."""
        try:
            out = await self.kubectl_in_cluster_output(
                "get",
                "pod",
                f"--namespace={SYSTEM_NAMESPACE}",
                "--output=json",
                self.component_pod_name(name),
            )
        except ExternalCommandFailed as e:
            if is_not_found(e.stderr_tail):
                return False, False
            annotate(e, "inspect", name)
            raise

        pod = json.loads(out)
        status = pod.get("status") or {}
        if status.get("phase") != "Running":
            return True, False
        container_statuses = status.get("containerStatuses")
        if not container_statuses:
            return True, False
        return True, all(s.get("ready") for s in container_statuses)

    async def _wait_component(self, name: str, want_ready: bool, timeout: float) -> None:
        async def condition() -> bool:
            try:
                exists, ready = await self._inspect_component(name)
            except (KindsimError, ValueError) as e:
                logger.debug("Check component ready", component=name, err=str(e))
                return False
            return ready if want_ready else not exists

        await poll(condition, timeout=timeout, immediate=True)

    # Logs

    async def logs(self, name: str, out: IO[Any], follow: bool = False) -> None:
        """Write a component's logs into ``out``."""
        args = ["logs", "-n", SYSTEM_NAMESPACE]
        if follow:
            args.append("-f")
        args.append(self.component_pod_name(name))
        if self.dry_run and not follow and isinstance(out, dryrun.CatToFile):
            kubectl = await self.kubectl_path()
            command = dryrun.format_command(kubectl, ["--context", f"kind-{self.name}", *args])
            dryrun.print_message(f"{command} >{out.name}")
            return
        await self.kubectl(*args, stdout=out, combined=True)

    async def logs_follow(self, name: str, out: IO[Any]) -> None:
        await self.logs(name, out, follow=True)

    async def collect_logs(self, dir: str | Path) -> None:
        await diagnostics.collect_logs(self, Path(dir))

    async def write_version_info(self, path: Path) -> None:
        """Write ``kind version`` output into ``path``."""
        kind = await self.kind_path()
        await self.run_to_path(path, kind, "version", env=provider_env(self.runtime))

    # Inventory

    async def list_images(self) -> list[str]:
        options = self.config().options
        return [options.kind_node_image, *list_all_images(options)]

    async def list_binaries(self) -> list[str]:
        options = self.config().options
        return [options.kind_binary, options.kubectl_binary]

    async def etcdctl_in_cluster(self, *args: str, **kwargs: Any) -> None:
        """Run etcdctl inside the etcd static pod."""
        await self.kubectl_in_cluster(
            "exec",
            "-i",
            "-n",
            SYSTEM_NAMESPACE,
            self.component_pod_name(COMPONENT_ETCD),
            "--",
            "etcdctl",
            f"--endpoints={LOCAL_ADDRESS}:2379",
            f"--cert={NODE_PKI_PATH}/etcd/server.crt",
            f"--key={NODE_PKI_PATH}/etcd/server.key",
            f"--cacert={NODE_PKI_PATH}/etcd/ca.crt",
            *args,
            **kwargs,
        )
