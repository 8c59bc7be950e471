from yearline.services.games.errors import ResourceError


class TokenLedger:
    """Bounded token balance of one seat, ``0 <= balance <= max_tokens``.

    Operations never clamp: an operation that would leave the bounds is
    rejected and the balance is left untouched.
    """

    def __init__(self, player, max_tokens: int):
        self.player = player
        self.max_tokens = max_tokens

    @property
    def balance(self) -> int:
        return int(self.player.token_balance or 0)

    def balance_at_least(self, amount: int) -> bool:
        return self.balance >= amount

    def can_earn(self, amount: int) -> bool:
        return self.balance + amount <= self.max_tokens

    def spend(self, amount: int, reason: str = 'Not enough tokens') -> int:
        if not self.balance_at_least(amount):
            raise ResourceError(reason)
        self.player.token_balance = self.balance - amount
        return self.player.token_balance

    def earn(self, amount: int, reason: str = 'You are at the maximum token limit') -> int:
        if not self.can_earn(amount):
            raise ResourceError(reason)
        self.player.token_balance = self.balance + amount
        return self.player.token_balance
