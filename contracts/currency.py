TransferEvent = LogEvent(
    event="Transfer",
    params={
        "from": {"type": str, "idx": True},
        "to": {"type": str, "idx": True},
        "amount": {"type": int}
    }
)

ApproveEvent = LogEvent(
    event="Approve",
    params={
        "from": {"type": str, "idx": True},
        "to": {"type": str, "idx": True},
        "amount": {"type": int}
    }
)

balances = Hash(default_value=0)
metadata = Hash()

INITIAL_SUPPLY = 1_000_000_000

@construct
def seed(vk: str):
    """
    vk: Account that receives the initial supply
    """
    balances[vk] = INITIAL_SUPPLY

    metadata["token_name"] = "Native Fee Currency"
    metadata["token_symbol"] = "FEE"
    metadata["operator"] = vk

@export
def balance_of(account: str):
    return balances[account]

@export
def transfer(amount: int, to: str):
    assert amount > 0, 'Cannot send negative balances!'

    sender = ctx.caller

    assert balances[sender] >= amount, 'Not enough coins to send!'

    balances[sender] -= amount
    balances[to] += amount

    TransferEvent({"from": sender, "to": to, "amount": amount})

@export
def allowance(owner: str, spender: str):
    return balances[owner, spender]

@export
def approve(amount: int, to: str):
    assert amount >= 0, 'Cannot approve negative balances!'

    sender = ctx.caller
    balances[sender, to] = amount

    ApproveEvent({"from": sender, "to": to, "amount": amount})
    return balances[sender, to]

@export
def transfer_from(amount: int, to: str, main_account: str):
    assert amount > 0, 'Cannot send negative balances!'

    sender = ctx.caller

    assert balances[main_account, sender] >= amount, 'Not enough coins approved to send! You have {} and are trying to spend {}'\
        .format(balances[main_account, sender], amount)
    assert balances[main_account] >= amount, 'Not enough coins to send!'

    balances[main_account, sender] -= amount
    balances[main_account] -= amount
    balances[to] += amount

    TransferEvent({"from": main_account, "to": to, "amount": amount})
