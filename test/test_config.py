import pytest

from ws_relay.production_config import CORS_HEADERS, DevelopmentConfig, ProductionConfig


def test_defaults_are_valid():
    assert ProductionConfig.validate() is True
    assert DevelopmentConfig.validate() is True


def test_development_overrides():
    assert DevelopmentConfig.RELAY_HOST == '127.0.0.1'
    assert DevelopmentConfig.LOG_LEVEL == 'DEBUG'
    assert DevelopmentConfig.ENABLE_MEMORY_MONITORING is True


@pytest.mark.parametrize("attribute, value", [
    ('RELAY_PORT', 0),
    ('RELAY_PORT', 70000),
    ('CONNECT_TIMEOUT', 0),
    ('MAX_MESSAGE_SIZE', -1),
    ('WARNING_MEMORY_MB', 2048),
    ('TARGET_PARAM', ''),
])
def test_invalid_settings_fail_validation(attribute, value):
    BrokenConfig = type('BrokenConfig', (ProductionConfig,), {attribute: value})
    assert BrokenConfig.validate() is False


def test_config_sections():
    assert ProductionConfig.get_relay_config()['target_param'] == ProductionConfig.TARGET_PARAM
    assert ProductionConfig.get_server_config()['port'] == ProductionConfig.RELAY_PORT
    assert 'enable_memory_monitoring' in ProductionConfig.get_monitoring_config()


def test_cors_headers_are_read_only():
    assert CORS_HEADERS['Access-Control-Allow-Origin'] == '*'
    with pytest.raises(TypeError):
        CORS_HEADERS['Access-Control-Allow-Origin'] = 'example.com'
