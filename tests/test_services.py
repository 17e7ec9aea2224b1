"""Tests for collaborator wiring and the MCP server lifespan."""

from __future__ import annotations

from unittest.mock import patch

from tactics_analyst.services import Services, build_services


class TestBuildServices:
    def test_builds_from_config(self, cfg):
        with (
            patch("tactics_analyst.services.GCSStorage.from_config", return_value="storage") as mock_storage,
            patch("tactics_analyst.services.GeminiFileProvider.from_config", return_value="provider") as mock_provider,
        ):
            services = build_services(cfg)

        mock_storage.assert_called_once_with(cfg)
        mock_provider.assert_called_once_with(cfg)
        assert services.storage == "storage"
        assert services.provider == "provider"
        assert services.config is cfg

    async def test_aclose_releases_both(self, cfg, fake_storage, fake_provider):
        services = Services(config=cfg, storage=fake_storage, provider=fake_provider)

        await services.aclose()

        fake_provider.aclose.assert_awaited_once()
        fake_storage.close.assert_called_once()


class TestServerLifespan:
    async def test_lifespan_owns_services(self, cfg, fake_storage, fake_provider):
        from tactics_analyst.server import _lifespan, app

        services = Services(config=cfg, storage=fake_storage, provider=fake_provider)
        with patch("tactics_analyst.server.build_services", return_value=services):
            async with _lifespan(app) as state:
                assert state == {"services": services}
                fake_provider.aclose.assert_not_awaited()

        fake_provider.aclose.assert_awaited_once()
        fake_storage.close.assert_called_once()
