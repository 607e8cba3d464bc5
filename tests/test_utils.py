import pytest
from datetime import timedelta
from autosnap.common.errors import ConfigurationError
from autosnap.common.utils import format_duration, get_human_size, setup_logging

def test_unknown_log_level(tmp_path):
    log_file = tmp_path / "autosnap.log"

    with pytest.raises(ConfigurationError, match="VERBOSE"):
        setup_logging(str(log_file), "VERBOSE")
    assert not log_file.exists()

def test_format_duration():
    assert format_duration(timedelta(days=1, hours=2, seconds=3)) == "1d 2h 3s"
    assert format_duration(timedelta(minutes=-5)) == "0s"

def test_get_human_size():
    assert get_human_size(512) == "512.00 B"
    assert get_human_size(13 * 1024 ** 3) == "13.00 GiB"
