from services.settings import OptimizationSettings


def test_defaults_without_environment(monkeypatch):
    for name in (
        "LOW_LOAD_THRESHOLD",
        "DEFAULT_BUS_CAPACITY",
        "FULL_TRANSFER_SAVINGS",
        "PARTIAL_TRANSFER_SAVINGS",
        "USE_POSSIBLE_STOPS",
        "STOP_ALIASES_FILE",
    ):
        monkeypatch.delenv(name, raising=False)

    assert OptimizationSettings.from_env() == OptimizationSettings()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LOW_LOAD_THRESHOLD", "20")
    monkeypatch.setenv("FULL_TRANSFER_SAVINGS", "3000")
    monkeypatch.setenv("USE_POSSIBLE_STOPS", "off")
    monkeypatch.setenv("STOP_ALIASES_FILE", "/etc/stops.json")

    settings = OptimizationSettings.from_env()

    assert settings.low_load_threshold == 20
    assert settings.full_transfer_savings == 3000
    assert settings.use_possible_stops is False
    assert settings.stop_aliases_file == "/etc/stops.json"


def test_bad_integer_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("DEFAULT_BUS_CAPACITY", "lots")
    assert OptimizationSettings.from_env().default_bus_capacity == 60
