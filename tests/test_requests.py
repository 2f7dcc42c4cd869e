import pytest
from pydantic import ValidationError

from basketswap.types.requests import RebalanceRequest, SwapQuoteRequest


SELL = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
BUY = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
WALLET = "0x1111111111111111111111111111111111111111"


def test_swap_request_accepts_api_field_names():
    request = SwapQuoteRequest.model_validate(
        {
            "sellToken": SELL,
            "buyToken": BUY,
            "sellAmount": "1000",
            "taker": WALLET,
            "txOrigin": WALLET,
        }
    )

    params = request.to_params()
    assert params["sellAmount"] == "1000"
    assert params["maxSlippageBps"] == 500
    assert params["skipSimulation"] == "false"
    assert params["encodingType"] == "basic"


def test_swap_request_rejects_bad_address():
    with pytest.raises(ValidationError):
        SwapQuoteRequest(sell_token="0x123", buy_token=BUY, sell_amount=1, taker=WALLET, tx_origin=WALLET)


def test_swap_request_rejects_zero_amount():
    with pytest.raises(ValidationError):
        SwapQuoteRequest(sell_token=SELL, buy_token=BUY, sell_amount=0, taker=WALLET, tx_origin=WALLET)


def test_rebalance_allocations_must_sum_to_one():
    with pytest.raises(ValidationError):
        RebalanceRequest(
            signer=WALLET,
            wallet=WALLET,
            base_entries=[{"tokenAddress": SELL, "amount": 10}],
            target_entries=[
                {"tokenAddress": BUY, "allocation": 0.5},
                {"tokenAddress": SELL, "allocation": 0.4},
            ],
        )


def test_rebalance_body_uses_api_names():
    request = RebalanceRequest(
        signer=WALLET,
        wallet=WALLET,
        base_entries=[{"tokenAddress": SELL, "amount": 10}],
        target_entries=[
            {"tokenAddress": BUY, "allocation": 0.7},
            {"tokenAddress": SELL, "allocation": 0.3},
        ],
    )

    body = request.to_body()

    assert body["maxDeviationFromTarget"] == 0.005
    assert body["batchTrade"] is True
    assert body["targetEntries"][0] == {"tokenAddress": BUY, "allocation": 0.7}
    assert body["baseEntries"][0]["amount"] == "10"
