"""Shared fixtures: a scripted provider, configs and a small sample project."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Callable

import pytest

from docsmith.agents.context import GeneratorContext
from docsmith.cache import CacheManager, CachePerformanceMonitor
from docsmith.config import CacheConfig, Config, LLMConfig
from docsmith.llm.invoker import ModelInvoker
from docsmith.llm.providers import AsyncLLMProvider
from docsmith.llm.types import MultiTurnOutcome, TokenUsage


class FakeProvider(AsyncLLMProvider):
    """Provider double that records calls and fails on demand.

    ``extract_result`` and ``text`` may be values or callables taking
    ``(system, user, model)``. Models in ``fail_models`` always fail; the
    first ``transient_failures`` calls of any kind fail too.
    """

    def __init__(
        self,
        *,
        extract_result: Any = None,
        text: Any = "ok",
        fail_models: set[str] | None = None,
        transient_failures: int = 0,
        fail_prompt_once: bool = False,
        multi_turn: MultiTurnOutcome | None = None,
    ) -> None:
        super().__init__(api_key="test")
        self.extract_result = extract_result if extract_result is not None else {}
        self.text = text
        self.fail_models = fail_models or set()
        self.transient_failures = transient_failures
        self.fail_prompt_once = fail_prompt_once
        self.multi_turn = multi_turn
        self.calls: list[dict[str, Any]] = []

    def _record(self, method: str, system: str, user: str, model: str) -> None:
        self.calls.append({"method": method, "system": system, "user": user, "model": model})
        if model in self.fail_models:
            raise RuntimeError(f"{model} unavailable")
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise RuntimeError("transient failure")

    @staticmethod
    def _resolve(value: Any, system: str, user: str, model: str) -> Any:
        if callable(value):
            return value(system, user, model)
        return copy.deepcopy(value)

    def calls_for(self, method: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["method"] == method]

    async def extract(self, system, user, model, schema):
        self._record("extract", system, user, model)
        return self._resolve(self.extract_result, system, user, model), TokenUsage(
            input_tokens=100, output_tokens=50,
        )

    async def prompt_once(self, system, user, model):
        self._record("prompt_once", system, user, model)
        if self.fail_prompt_once:
            raise RuntimeError("prompt_once failed")
        return self._resolve(self.text, system, user, model), TokenUsage(
            input_tokens=20, output_tokens=10,
        )

    async def prompt_multi_turn(self, system, user, model, tools, max_iterations):
        self._record("prompt_multi_turn", system, user, model)
        if self.multi_turn is not None:
            return self.multi_turn.model_copy(deep=True)
        return MultiTurnOutcome(
            completed=True,
            text=self._resolve(self.text, system, user, model),
            iterations_used=1,
            conversation=[{"role": "system", "content": system}, {"role": "user", "content": user}],
        )


def scripted_research(system: str, user: str, model: str) -> dict[str, Any]:
    """Minimal valid structured answers, chosen by the agent's system prompt."""
    if "project goals" in system:
        return {"project_name": "shop", "project_type": "web service", "confidence_score": 8}
    if "domain-driven design" in system:
        return {"domain_modules": [
            {"name": "orders", "code_paths": ["app/api", "app/services"], "importance": 9},
            {"name": "payments", "code_paths": ["app/models.py"], "importance": 6},
        ]}
    if "core functional workflows" in system:
        return {"main_workflow": {"name": "Place order"}}
    if "thoroughly and rigorously" in system:
        return {"module_description": "Order handling"}
    if "system boundary analyst" in system:
        return {"api_boundaries": [{"endpoint": "/orders", "method": "GET"}]}
    raise AssertionError(f"unexpected system prompt: {system[:60]}")


@pytest.fixture
def llm_config() -> LLMConfig:
    return LLMConfig(
        provider="openai",
        api_key="test",
        model_efficient="small",
        model_powerful="big",
        retry_attempts=3,
        retry_delay_ms=0,
        react_max_iterations=2,
    )


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """A tiny Flask-style project."""
    root = tmp_path / "shop"
    files = {
        "README.md": "# Shop\n\nA small web shop.\n\n```bash\npip install shop\n```\n",
        "app/main.py": (
            "from .api.routes import register\n"
            "from .services.order_service import OrderService\n\n"
            "def create_app():\n"
            "    app = object()\n"
            "    register(app)\n"
            "    return app\n"
        ),
        "app/__init__.py": "",
        "app/api/__init__.py": "",
        "app/api/routes.py": (
            "from flask import Blueprint\n"
            "from ..models import Order\n\n"
            "bp = Blueprint('orders', __name__)\n\n"
            "@bp.get('/orders')\n"
            "def list_orders():\n"
            "    return []\n\n"
            "@bp.post('/orders')\n"
            "def create_order(payload: dict):\n"
            "    if not payload:\n"
            "        return None\n"
            "    return Order()\n\n"
            "def register(app):\n"
            "    pass\n"
        ),
        "app/models.py": "class Order:\n    id: int = 0\n\nclass Customer:\n    name: str = ''\n",
        "app/services/__init__.py": "",
        "app/services/order_service.py": (
            "from app.models import Order\n\n"
            "class OrderService:\n"
            "    def place(self, order: Order, notify=True):\n"
            "        return order\n"
        ),
        "app/config.py": "DEBUG = False\n",
        "tests/test_orders.py": "def test_nothing():\n    assert True\n",
        "node_modules/lib/index.js": "module.exports = {}\n",
        "logo.png": "not really a png",
    }
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def config(tmp_path: Path, sample_project: Path, llm_config: LLMConfig) -> Config:
    return Config(
        project_path=sample_project,
        output_path=tmp_path / "out",
        internal_path=tmp_path / "internal",
        llm=llm_config,
        cache=CacheConfig(cache_dir=tmp_path / "cache"),
    )


@pytest.fixture
def make_ctx(config: Config) -> Callable[..., GeneratorContext]:
    """Build a context around a provider; the cache monitor is quiet."""

    def _make(provider: AsyncLLMProvider, cfg: Config | None = None) -> GeneratorContext:
        cfg = cfg or config
        return GeneratorContext(
            config=cfg,
            invoker=ModelInvoker(provider, cfg.llm),
            cache=CacheManager(cfg.cache, monitor=CachePerformanceMonitor(quiet=True)),
        )

    return _make
