"""服务编排流程 service_setup

步骤顺序:
1. load_service   - 读取已有服务记录（不存在视为 initialized）
2. download_image - 拉取镜像
3. reserve_ips    - 分配 local + global 地址
4. launch         - 创建并启动容器
5. attach_network - global 地址挂网桥 + NAT 到 local 地址
6. plan           - 容器内执行 plan 钩子
7. persist        - 写入服务记录（state=planned）
8. env_vars       - 推导并合并环境变量

每个拿到资源的步骤都登记补偿动作；任一步失败即执行全部补偿后抛出原错误。
记录只在第 7 步写入一次，失败的编排不会留下半成品记录。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from ipaddress import IPv4Address
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from provisioner.services.container import ServiceContainer

from provisioner.core.exceptions import (
    ExecutionError,
    ExternalCallError,
    PersistenceError,
    ValidationError,
)
from provisioner.core.models import (
    ContainerConfig,
    ContainerHandle,
    PlanUser,
    Service,
    ServicePlan,
    ServiceState,
    ServiceType,
)
from provisioner.core.process import ProcessControl, Processor
from provisioner.services.boxfile import Boxfile
from provisioner.services.setup.compensation import CompensationLog
from provisioner.services.setup.env_vars import project_env_vars
from provisioner.services.setup.plan import PLAN_STAGE, parse_plan, run_plan
from provisioner.utils.passwords import random_string
from provisioner.utils.logger import stage_logger
from provisioner.utils.stylish import nested_prefix

logger = logging.getLogger(__name__)

SERVICE_SETUP = "service_setup"

T = TypeVar("T")


class ServiceSetup(Processor):
    """单个服务的编排流程（可续跑）"""

    def __init__(
        self, control: ProcessControl, container: ServiceContainer,
        boxfile: Boxfile | None = None,
    ) -> None:
        self.control = control
        self.c = container
        self.boxfile = boxfile or Boxfile()
        self.service = Service()
        self.local_ip: IPv4Address | None = None
        self.global_ip: IPv4Address | None = None
        self.handle: ContainerHandle | None = None
        self.plan: ServicePlan | None = None
        self.failed = False
        self._stored: dict[str, Any] | None = None
        self.compensations = CompensationLog(order=container.config.compensation_order)
        self.log = stage_logger(logger, SERVICE_SETUP, control.get("name"))

    @classmethod
    def create(cls, container: ServiceContainer, control: ProcessControl) -> ServiceSetup:
        """工厂：校验请求元信息，缺 name / image 时在任何副作用之前拒绝"""
        missing = [k for k in ("name", "image") if not control.get(k)]
        if missing:
            raise ValidationError("缺少 image 或 name", details=missing)
        if not control.get("label"):
            control = control.with_meta(label=control.get("name"))
        boxfile = Boxfile.from_text(control.get("boxfile"))
        return cls(control, container, boxfile)

    @property
    def name(self) -> str:
        return self.control.get("name")

    def results(self) -> ProcessControl:
        return self.control

    # ---- 主流程 ----

    def process(self) -> None:
        self.control.display(f"正在启动 {self.control.get('label')}...")

        try:
            self._load_service()
            if not self.service.initialized:
                self.log.info("已处于 %s，跳过", self.service.state)
                self._publish()
                return
            self._download_image()
            self._reserve_ips()
            handle = self._launch_container()
            self._attach_network()
            plan = self._plan_service(handle)
            self._persist_service(handle, plan)
            self._add_env_vars()
        except Exception as exc:
            self.failed = True
            self.log.error("失败: %s", exc)
            self._clean(exc)
            raise

        self.compensations.clear()
        self._publish()
        self.log.info("已就绪 (%s / %s)",
                      self.service.internal_ip, self.service.external_ip)

    def _publish(self) -> None:
        """把服务的容器与地址写回上下文，供后续流程串联"""
        self.control = self.control.with_meta(
            container_id=self.service.id,
            internal_ip=self.service.internal_ip,
            external_ip=self.service.external_ip,
        )

    def _clean(self, cause: BaseException) -> None:
        """执行已登记的补偿动作；补偿失败时抛 CompensationError 取代原错误"""
        if not self.compensations:
            return
        self.log.info("回滚 %d 个动作 (%s): %s",
                      len(self.compensations), self.compensations.order,
                      self.compensations.labels)
        self.compensations.run(cause=cause)

    @staticmethod
    def _external(stage: str, fn: Callable[..., T], *args: Any) -> T:
        """调用外部协作方，失败包装为带步骤标签的 ExternalCallError"""
        try:
            return fn(*args)
        except (ExecutionError, OSError) as e:
            raise ExternalCallError(stage, str(e)) from e

    # ---- 步骤 ----

    def _load_service(self) -> None:
        """步骤1: 读取已有记录；不存在不算错误"""
        data = self.c.storage.get(self.c.config.app_name, self.name)
        self._stored = data
        if data is not None:
            self.service = Service.from_dict(data)
        if not self.service.state:
            self.service.state = ServiceState.INITIALIZED.value

    def _download_image(self) -> None:
        """步骤2: 拉取镜像，进度输出到下一层级"""
        image = self.control.get("image")
        prefix = f"{nested_prefix(self.control.display_level + 1)}+ Pulling {image} -"
        sink = self.control.display_sink

        def progress(line: str) -> None:
            sink.display(f"{prefix} {line}")

        self._external("download_image", self.c.engine.pull_image, image, progress)

    def _reserve_ips(self) -> None:
        """步骤3: 分配 local + global 地址，各自登记归还动作"""
        pool = self.c.pool

        local_ip = pool.reserve_local()
        self.local_ip = local_ip
        self.compensations.push("return_local_ip", lambda: pool.return_ip(local_ip))

        global_ip = pool.reserve_global()
        self.global_ip = global_ip
        self.compensations.push("return_global_ip", lambda: pool.return_ip(global_ip))

    def _launch_container(self) -> ContainerHandle:
        """步骤4: 创建并启动容器"""
        cfg = self.c.config
        config = ContainerConfig(
            name=f"{cfg.container_prefix}-{cfg.app_name}-{self.name}",
            image=self.control.get("image"),
            network=cfg.docker_network,
            ip=str(self.local_ip),
        )
        self.control.nested().info("启动容器...")
        engine = self.c.engine
        handle = self._external("launch_container", engine.create_container, config)
        self.compensations.push("remove_container", lambda: engine.remove_container(handle.id))
        self.handle = handle
        return handle

    def _attach_network(self) -> None:
        """步骤5: global 地址挂网桥，再建 NAT；两个动作各自登记撤销"""
        self.control.nested().info("桥接容器到主机网络...")
        network = self.c.network
        global_ip, local_ip = str(self.global_ip), str(self.local_ip)

        self._external("attach_network", network.add_ip, global_ip)
        self.compensations.push("remove_ip", lambda: network.remove_ip(global_ip))

        self._external("attach_network", network.add_nat, global_ip, local_ip)
        self.compensations.push("remove_nat", lambda: network.remove_nat(global_ip, local_ip))

    def _plan_service(self, handle: ContainerHandle) -> ServicePlan:
        """步骤6: 容器内执行 plan 钩子，解析运行时需求"""
        self.control.nested().info("收集服务运行需求...")
        config_tree = self.boxfile.node(self.name).node("config").parsed
        prefix = nested_prefix(self.control.display_level + 2)
        sink = self.control.display_sink

        def output(line: str) -> None:
            sink.display(f"{prefix}{line}")

        container_id = handle.id
        raw = self._external(
            PLAN_STAGE, lambda: run_plan(
                self.c.engine, container_id, config_tree,
                command=self.c.config.plan_command, output=output,
            ),
        )
        self.plan = parse_plan(raw, stage=PLAN_STAGE)
        return self.plan

    def _persist_service(self, handle: ContainerHandle, plan: ServicePlan) -> None:
        """步骤7: 合并容器 / 地址 / plan 写回存储；每个用户生成新密码"""
        self.service.id = handle.id
        self.service.name = self.name
        self.service.external_ip = str(self.global_ip)
        self.service.internal_ip = str(self.local_ip)
        self.service.advance(ServiceState.PLANNED)
        self.service.type = ServiceType.DATA.value
        self.service.plan = ServicePlan(
            users=[PlanUser(username=u.username, password=random_string())
                   for u in plan.users],
            default_user=plan.default_user,
        )
        try:
            self.c.storage.put(self.c.config.app_name, self.name, self.service.to_dict())
        except OSError as e:
            raise PersistenceError(f"persist_service: {e}") from e
        self.compensations.push("restore_service_record", self._restore_record)

    def _restore_record(self) -> None:
        """撤销持久化：恢复编排前的记录，原本不存在则删除"""
        app = self.c.config.app_name
        if self._stored is None:
            self.c.storage.delete(app, self.name)
        else:
            self.c.storage.put(app, self.name, self._stored)

    def _add_env_vars(self) -> None:
        """步骤8: 推导环境变量并合并进应用环境变量表"""
        self.c.env_vars.merge(project_env_vars(self.service))
