import json

import pytest

from webscraper.crawler.config import CrawlConfig, load_config, save_config


class TestCrawlConfig:
    def test_defaults(self):
        config = CrawlConfig()
        assert config.queue_capacity == 10_000
        assert config.retry_attempts == 2
        assert config.retry_policy.initial_delay_seconds == 2.0
        assert config.min_image_bytes == 200 * 1024
        assert config.output_dir == "compressed-images"
        assert len(config.user_agents) == 11

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"fetch_workers": 0},
            {"queue_capacity": 0},
            {"queue_overflow": "drop"},
            {"retry_attempts": 0},
            {"min_quality": 0.0},
            {"initial_quality": 0.05},
            {"user_agents": []},
        ],
    )
    def test_validation(self, kwargs):
        with pytest.raises(ValueError):
            CrawlConfig(**kwargs)

    def test_from_dict_coerces_and_rejects_unknown(self):
        config = CrawlConfig.from_dict({"fetch_workers": "3", "queue_overflow": "REJECT"})
        assert config.fetch_workers == 3
        assert config.queue_overflow == "reject"

        with pytest.raises(ValueError, match="Unknown config keys"):
            CrawlConfig.from_dict({"max_pages": 10})
        with pytest.raises(ValueError):
            CrawlConfig.from_dict({"fetch_workers": "many"})


class TestConfigFiles:
    def test_yaml_round_trip(self, tmp_path):
        path = tmp_path / "crawl.yaml"
        save_config(CrawlConfig(fetch_workers=4, output_dir="imgs"), path)
        loaded = load_config(path)
        assert loaded.fetch_workers == 4
        assert loaded.output_dir == "imgs"

    def test_json_partial(self, tmp_path):
        path = tmp_path / "crawl.json"
        path.write_text(json.dumps({"image_workers": 8}), encoding="utf-8")
        assert load_config(path).image_workers == 8

    def test_unsupported_suffix(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(tmp_path / "crawl.toml")
