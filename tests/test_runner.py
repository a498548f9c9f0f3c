from __future__ import annotations

import pytest

from codes_validation import runner
from codes_validation.code_sources import read_code_pool
from codes_validation.exceptions import ProvisioningError


@pytest.fixture()
def runner_env(monkeypatch, base_env, tmp_path):
    for key, value in base_env.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("LT_AC_CODE_SOURCE", "booking")
    monkeypatch.setenv("LT_AC_SESSION_ID", "12")
    monkeypatch.setenv("LT_AC_CODES_FILE", str(tmp_path / "codes.json"))
    return tmp_path


@pytest.mark.asyncio
async def test_runner_writes_pool_file(monkeypatch, runner_env):
    async def fake_load(settings):
        return ["R1", "R2"]

    monkeypatch.setattr(runner, "load_code_pool", fake_load)
    assert await runner.run() == 0
    assert read_code_pool(runner_env / "codes.json") == ["R1", "R2"]


@pytest.mark.asyncio
async def test_runner_custom_output_path(monkeypatch, runner_env):
    async def fake_load(settings):
        return ["R1"]

    monkeypatch.setattr(runner, "load_code_pool", fake_load)
    target = runner_env / "other" / "pool.json"
    assert await runner.run(target) == 0
    assert read_code_pool(target) == ["R1"]


@pytest.mark.asyncio
async def test_runner_reports_provisioning_failure(monkeypatch, runner_env):
    async def failing_load(settings):
        raise ProvisioningError("boom", step="create_cart", order_index=1, status_code=500)

    monkeypatch.setattr(runner, "load_code_pool", failing_load)
    assert await runner.run() == 1
    assert not (runner_env / "codes.json").exists()


@pytest.mark.asyncio
async def test_runner_rejects_file_source(monkeypatch, runner_env):
    monkeypatch.setenv("LT_AC_CODE_SOURCE", "file")
    assert await runner.run() == 1


@pytest.mark.asyncio
async def test_runner_configuration_error(monkeypatch, runner_env):
    monkeypatch.delenv("USER_TOKEN")
    assert await runner.run() == 1
