from domain.base_types import AccountId, Currency, CurrencyPair

BTC = Currency("BTC")
ETH = Currency("ETH")
USD = Currency("USD")

BTC_USD = CurrencyPair(base=BTC, counter=USD)
ETH_BTC = CurrencyPair(base=ETH, counter=BTC)
ETH_USD = CurrencyPair(base=ETH, counter=USD)

GEMINI = AccountId("Gemini")
POLONIEX = AccountId("Poloniex")

COLD_WALLET = "1ColdWalletAddressXyZ"
EXCHANGE_WALLET = "0xOtherExchangeDeposit"
