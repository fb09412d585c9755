import asyncio
import ipaddress
import time

import pytest

from managed_exceptions import (
    DeadlineExceededException,
    InternalErrorException,
    InvalidArgumentException,
    MalformedResponseException,
    UnavailableException,
)
from ipsync.models import Observer
from ipsync.services.confirmation import ConfirmationEngine, TrustAuthority

A = ipaddress.ip_address("8.8.8.8")
B = ipaddress.ip_address("1.1.1.1")


def _run(engine, deadline=None):
    return asyncio.run(engine.run(deadline))


def test_three_equal_observers_agree(observer_client_factory):
    observers = [Observer.HTTPBIN, Observer.IPIFY, Observer.IPINFO]
    authority = TrustAuthority({observer: 1 for observer in observers})
    client = observer_client_factory({observer: "8.8.8.8" for observer in observers})

    report = _run(ConfirmationEngine(observers, authority, observer_client=client))

    assert report.threshold == 2
    assert report.confirmed == frozenset({A})
    assert report.unconfirmed == {}
    assert report.weights == {A: 3}
    assert set(report.votes[A]) == set(observers)
    assert report.failed == {}
    assert sorted(client.calls) == sorted(observers)


def test_two_equal_observers_disagree(observer_client_factory):
    observers = [Observer.HTTPBIN, Observer.IPIFY]
    authority = TrustAuthority({Observer.HTTPBIN: 1, Observer.IPIFY: 1})
    client = observer_client_factory({Observer.HTTPBIN: "8.8.8.8", Observer.IPIFY: "1.1.1.1"})

    report = _run(ConfirmationEngine(observers, authority, observer_client=client))

    assert report.threshold == 2
    assert report.confirmed == frozenset()
    assert report.unconfirmed == {A: 1, B: 1}


def test_weighted_observers_disagree(observer_client_factory):
    observers = [Observer.HTTPBIN, Observer.IPIFY]
    authority = TrustAuthority({Observer.HTTPBIN: 1, Observer.IPIFY: 2})
    client = observer_client_factory({Observer.HTTPBIN: "8.8.8.8", Observer.IPIFY: "1.1.1.1"})

    report = _run(ConfirmationEngine(observers, authority, observer_client=client))

    assert report.threshold == 3
    assert report.confirmed == frozenset()
    assert report.unconfirmed == {A: 1, B: 2}


def test_confirmed_and_unconfirmed_are_disjoint(observer_client_factory):
    observers = list(Observer)
    client = observer_client_factory({
        Observer.HTTPBIN: "1.1.1.1",
        Observer.IPIFY: "8.8.8.8",
        Observer.IFCONFIG: "8.8.8.8",
        Observer.IPINFO: "8.8.8.8",
    })

    report = _run(ConfirmationEngine(observers, TrustAuthority(), observer_client=client))

    assert report.threshold == 4
    assert report.confirmed.isdisjoint(report.unconfirmed)
    for address in report.confirmed:
        assert report.weights[address] >= report.threshold
    for weight in report.unconfirmed.values():
        assert weight < report.threshold


def test_failed_observers_do_not_vote(observer_client_factory):
    observers = [Observer.IPIFY, Observer.IFCONFIG, Observer.IPINFO]
    client = observer_client_factory({
        Observer.IPIFY: "8.8.8.8",
        Observer.IFCONFIG: UnavailableException("connection refused"),
        Observer.IPINFO: MalformedResponseException("garbage"),
    })

    report = _run(ConfirmationEngine(observers, TrustAuthority(), observer_client=client))

    # (2 + 2 + 2) * 0.67 = 4.02, a single MED vote is not enough
    assert report.threshold == 4
    assert report.confirmed == frozenset()
    assert report.unconfirmed == {A: 2}
    assert isinstance(report.failed[Observer.IFCONFIG], UnavailableException)
    assert isinstance(report.failed[Observer.IPINFO], MalformedResponseException)


def test_unexpected_errors_are_wrapped(observer_client_factory):
    client = observer_client_factory({Observer.IPIFY: RuntimeError("boom")})

    report = _run(ConfirmationEngine([Observer.IPIFY], TrustAuthority(), observer_client=client))

    assert isinstance(report.failed[Observer.IPIFY], InternalErrorException)


def test_non_public_candidate_is_a_failure(observer_client_factory):
    client = observer_client_factory({Observer.IPIFY: "192.168.1.10", Observer.IPINFO: "8.8.8.8"})

    report = _run(ConfirmationEngine([Observer.IPIFY, Observer.IPINFO], TrustAuthority(), observer_client=client))

    assert isinstance(report.failed[Observer.IPIFY], InvalidArgumentException)
    assert ipaddress.ip_address("192.168.1.10") not in report.weights
    assert report.weights == {A: 2}


def test_non_public_local_address_short_circuits(observer_client_factory):
    client = observer_client_factory({Observer.IPIFY: "8.8.8.8", Observer.IPINFO: "8.8.8.8"})
    engine = ConfirmationEngine(
        [Observer.IPIFY, Observer.IPINFO],
        TrustAuthority(),
        observer_client=client,
        local_address="10.0.0.5"
    )

    report = _run(engine)

    assert client.calls == []
    assert set(report.failed) == {Observer.IPIFY, Observer.IPINFO}
    assert report.confirmed == frozenset()


def test_override_threshold_wins(observer_client_factory):
    client = observer_client_factory({observer: "8.8.8.8" for observer in Observer})
    engine = ConfirmationEngine([Observer.HTTPBIN], TrustAuthority(), confirmations=2, observer_client=client)

    report = _run(engine)

    assert report.default_threshold == 1
    assert report.threshold == 2
    assert report.is_override
    assert report.unconfirmed == {A: 1}


def test_deadline_records_pending_observers(observer_client_factory):
    client = observer_client_factory({Observer.IPIFY: "8.8.8.8", Observer.IPINFO: "8.8.8.8"})
    original_observe = client.observe

    def slow_observe(observer):
        if observer == Observer.IPINFO:
            time.sleep(0.5)
        return original_observe(observer)

    client.observe = slow_observe
    engine = ConfirmationEngine([Observer.IPIFY, Observer.IPINFO], TrustAuthority(), observer_client=client)

    report = _run(engine, deadline=0.1)

    assert isinstance(report.failed[Observer.IPINFO], DeadlineExceededException)
    assert report.weights == {A: 2}


def test_observers_are_deduplicated(observer_client_factory):
    client = observer_client_factory({Observer.IPIFY: "8.8.8.8"})
    engine = ConfirmationEngine([Observer.IPIFY, Observer.IPIFY], TrustAuthority(), observer_client=client)

    report = _run(engine)

    assert engine.observers == (Observer.IPIFY,)
    assert report.weights == {A: 2}
    assert client.calls == [Observer.IPIFY]


def test_empty_observers_rejected():
    with pytest.raises(InvalidArgumentException):
        ConfirmationEngine([], TrustAuthority())


def test_negative_confirmations_rejected(observer_client_factory):
    with pytest.raises(InvalidArgumentException):
        ConfirmationEngine([Observer.IPIFY], TrustAuthority(), confirmations=-1, observer_client=observer_client_factory({}))
