"""
Tests for the Amazon email/password login and second-factor detection.
"""
import pytest

from librarysync.stores.amazon import AmazonStore, requires_second_factor
from conftest import fail, make_runner, ok

LOGIN = ('nile', 'auth', '--login', '--non-interactive')


@pytest.mark.parametrize("stderr", [
    "Error: 2FA required",
    "Please enter the verification code sent to your phone",
    "Two-Factor authentication is enabled",
])
def test_second_factor_detected(stderr):
    assert requires_second_factor(stderr) == True


@pytest.mark.parametrize("stderr", ["Invalid password", "", None])
def test_second_factor_not_detected(stderr):
    assert requires_second_factor(stderr) == False


@pytest.mark.asyncio
async def test_login_success_sends_credentials_on_stdin():
    runner = make_runner({LOGIN: ok()})

    result = await AmazonStore(runner).login('me@example.com', 'hunter2')

    assert result.success == True
    call = runner.run.await_args
    assert call.kwargs['input_text'] == 'me@example.com\nhunter2\n'
    assert 'hunter2' not in call.args[1]


@pytest.mark.asyncio
async def test_login_requests_second_factor():
    runner = make_runner({LOGIN: fail('Amazon requires a verification code')})

    result = await AmazonStore(runner).login('me@example.com', 'hunter2')

    assert result.success == False
    assert result.requires_second_factor == True
    assert result.error is None


@pytest.mark.asyncio
async def test_login_plain_failure_reports_error():
    runner = make_runner({LOGIN: fail('Invalid password')})

    result = await AmazonStore(runner).login('me@example.com', 'wrong')

    assert result.success == False
    assert result.requires_second_factor == False
    assert result.error == 'Invalid password'


@pytest.mark.asyncio
async def test_login_with_second_factor():
    runner = make_runner({('nile', 'register', '--code', '123456'): ok()})

    result = await AmazonStore(runner).login_with_second_factor('me@example.com', 'hunter2', '123456')

    assert result.success == True
    assert runner.run.await_args.kwargs['input_text'] == 'me@example.com\nhunter2\n'


@pytest.mark.asyncio
async def test_login_with_bad_second_factor():
    runner = make_runner({('nile', 'register', '--code', '000000'): fail('code rejected')})

    result = await AmazonStore(runner).login_with_second_factor('me@example.com', 'hunter2', '000000')

    assert result.success == False
    assert result.error == 'code rejected'
