"""
IP 地理位置查询测试
"""

from utils.geoip import GeoLocator, EMPTY_LOCATION, _pick_name, get_geo_locator, reset_geo_locator


class TestPickName:
    """地名选择测试"""

    def test_prefers_chinese(self):
        assert _pick_name({"en": "Beijing", "zh-CN": "北京"}) == "北京"

    def test_falls_back_to_english(self):
        assert _pick_name({"en": "Tokyo"}) == "Tokyo"

    def test_empty(self):
        assert _pick_name(None) == ""
        assert _pick_name({}) == ""


class TestGeoLocator:
    """查询器测试"""

    def test_missing_database(self, tmp_path):
        """数据库不存在时返回空位置"""
        locator = GeoLocator([tmp_path / "missing.mmdb"])
        assert locator.available is False
        assert locator.lookup("8.8.8.8") == EMPTY_LOCATION

    def test_invalid_database_file(self, tmp_path):
        """损坏的数据库文件不影响查询"""
        broken = tmp_path / "broken.mmdb"
        broken.write_bytes(b"not a maxmind database")

        locator = GeoLocator([broken])
        assert locator.lookup("8.8.8.8") == EMPTY_LOCATION

    def test_close_allows_reopen(self, tmp_path):
        locator = GeoLocator([tmp_path / "missing.mmdb"])
        locator.lookup("8.8.8.8")
        locator.close()
        assert locator._opened is False

    def test_global_locator_uses_settings(self, workspace):
        """全局查询器使用配置中的路径，重置后重新创建"""
        locator = get_geo_locator()
        assert get_geo_locator() is locator
        assert locator.lookup("203.0.113.1") == EMPTY_LOCATION

        reset_geo_locator()
        assert get_geo_locator() is not locator
