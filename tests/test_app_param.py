from dataclasses import asdict

import pytest

from basnet.app_param import AppParam, get_param


def write_config(tmp_path, text):
    path = tmp_path / "proxy.conf"
    path.write_text(text, encoding="utf-8")
    return path


def test_empty_file_gives_defaults(tmp_path):
    param = get_param(write_config(tmp_path, ""))
    assert param == AppParam()
    assert param.port == 2012
    assert param.handler_pool_max == 9999
    assert param.read_buffer_size == 256


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        get_param(tmp_path / "absent.conf")


def test_values_are_read_from_sections(tmp_path):
    text = (
        "# proxy settings\n"
        "[server]\n"
        "ip = 127.0.0.1\n"
        "port = 8080\n"
        "session_timeout = 60   # seconds\n"
        "\n"
        "[proxy]\n"
        "local_ip = 10.0.0.1\n"
        "peer_ip = 10.0.0.2\n"
        "peer_port = 9000\n"
    )
    param = get_param(str(write_config(tmp_path, text)))
    assert param.ip == "127.0.0.1"
    assert param.port == 8080
    assert param.session_timeout == 60
    assert param.local_ip == "10.0.0.1"
    assert param.proxy_ip == "10.0.0.2"
    assert param.proxy_port == 9000
    assert param.io_thread_size == AppParam().io_thread_size


def test_unknown_options_are_ignored(tmp_path):
    text = "[server]\nunknown = 5\n[other]\nport = 1\n"
    assert get_param(write_config(tmp_path, text)) == AppParam()


def test_round_trip_of_all_fields(tmp_path):
    expected = AppParam(
        ip="0.0.0.0", port=1, accept_queue_size=2, io_thread_size=3,
        work_thread_init=5, work_thread_high=6, work_thread_load=7,
        handler_pool_init=8, handler_pool_low=9, handler_pool_high=10,
        handler_pool_inc=11, handler_pool_max=12, read_buffer_size=13,
        write_buffer_size=14, session_timeout=15, io_timeout=16,
        local_ip="1.1.1.1", proxy_ip="2.2.2.2", proxy_port=17,
    )
    values = asdict(expected)
    proxy_keys = {"local_ip": "local_ip", "proxy_ip": "peer_ip", "proxy_port": "peer_port"}
    lines = ["[server]"]
    lines += [f"{k} = {v}" for k, v in values.items() if k not in proxy_keys]
    lines.append("[proxy]")
    lines += [f"{name} = {values[k]}" for k, name in proxy_keys.items()]
    param = get_param(write_config(tmp_path, "\n".join(lines) + "\n"))
    assert param == expected


@pytest.mark.parametrize(
    "text",
    [
        "[server]\nport = 65536\n",
        "[server]\nport = -1\n",
        "[server]\nport = abc\n",
        "[server]\nsession_timeout = 4294967296\n",
        "[server]\nio_thread_size =\n",
        "[server]\nthis line has no equals sign\n",
        "[server]\nport = 1\nport = 2\n",
    ],
)
def test_malformed_config_raises(tmp_path, text):
    with pytest.raises(ValueError):
        get_param(write_config(tmp_path, text))


def test_port_upper_bound_accepted(tmp_path):
    param = get_param(write_config(tmp_path, "[server]\nport = 65535\n"))
    assert param.port == 65535