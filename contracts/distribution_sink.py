# Minimal staking / escrow beneficiary. It accepts distribution notices from the
# token and keeps a running tally for its own reward accounting.

NotifiedEvent = LogEvent(
    event="DistributionNotified",
    params={
        "token": {"type": str, "idx": True},
        "amount": {"type": int}
    }
)

token = Variable()
owner = Variable()

totalNotified = Variable()
notifications = Variable()

# Lets an operator pause intake, e.g. while migrating reward pools
paused = Variable()

@construct
def seed(token_contract: str):
    token.set(token_contract)
    owner.set(ctx.caller)
    totalNotified.set(0)
    notifications.set(0)
    paused.set(False)

def only_owner():
    assert ctx.caller == owner.get(), "Only the contract owner can call this method."

@export
def notifyDistribution(amount: int):
    assert ctx.caller == token.get(), "Only the token can notify distributions."
    assert not paused.get(), "Sink: paused"

    totalNotified.set(totalNotified.get() + amount)
    notifications.set(notifications.get() + 1)

    NotifiedEvent({"token": ctx.caller, "amount": amount})

@export
def setPaused(value: bool):
    only_owner()
    paused.set(value)

@export
def getTotalNotified():
    return totalNotified.get()

@export
def getNotifications():
    return notifications.get()
