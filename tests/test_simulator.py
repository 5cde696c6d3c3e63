import random

from rover_relay.simulator import YOLO_LABELS, RoverSimulator


def make_simulator():
    return RoverSimulator("ws://127.0.0.1:3000/ws", rng=random.Random(7), clock=lambda: 0.0)


def test_gps_drives_in_a_circle():
    sim = make_simulator()
    first = sim.next_gps()
    second = sim.next_gps()
    assert first["heading"] == 2
    assert second["heading"] == 4
    assert first["speed"] == 5.0
    assert second["lat"] != first["lat"]


def test_heading_wraps():
    sim = make_simulator()
    sim.state.heading = 359
    assert sim.next_gps()["heading"] == 1


def test_radar_range():
    sim = make_simulator()
    for _ in range(50):
        radar = sim.next_radar()
        assert set(radar) == {"front", "right", "back", "left"}
        assert all(10 <= value < 160 for value in radar.values())


def test_detections_are_occasional():
    sim = make_simulator()
    results = [sim.maybe_detections() for _ in range(200)]
    hits = [r for r in results if r is not None]
    assert 0 < len(hits) < len(results)
    for [detection] in hits:
        assert detection["label"] in YOLO_LABELS
        assert 0.7 <= float(detection["conf"]) <= 1.0
