# ------------------------------------------------------------------------------
# EVENTS
# ------------------------------------------------------------------------------

MintEvent = LogEvent(
    event="Mint",
    params={
        "to": {"type": str, "idx": True},
        "amount": {"type": int}
    }
)

BurnEvent = LogEvent(
    event="Burn",
    params={
        "from": {"type": str, "idx": True},
        "amount": {"type": int}
    }
)

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

DistributionEvent = LogEvent(
    event="Distribution",
    params={
        "amount": {"type": int},
        "staking_amount": {"type": int},
        "escrow_amount": {"type": int},
        "treasury_amount": {"type": int},
        "total_distributed": {"type": int}
    }
)

VestingFactorEvent = LogEvent(
    event="VestingFactorSet",
    params={
        "numerator": {"type": int},
        "denominator": {"type": int}
    }
)

DistributionParamsEvent = LogEvent(
    event="DistributionParamsSet",
    params={
        "staking": {"type": int},
        "escrow": {"type": int},
        "treasury": {"type": int}
    }
)

BeneficiaryEvent = LogEvent(
    event="BeneficiarySet",
    params={
        "role": {"type": str, "idx": True},
        "account": {"type": str, "idx": True}
    }
)

AuthorizedEvent = LogEvent(
    event="Authorized",
    params={
        "account": {"type": str, "idx": True},
        "authorized": {"type": bool}
    }
)

PeerEvent = LogEvent(
    event="PeerSet",
    params={
        "domain": {"type": int, "idx": True},
        "router": {"type": str}
    }
)

OwnershipEvent = LogEvent(
    event="OwnershipTransferred",
    params={
        "previous_owner": {"type": str, "idx": True},
        "new_owner": {"type": str, "idx": True}
    }
)

SendEvent = LogEvent(
    event="Send",
    params={
        "message_id": {"type": str, "idx": True},
        "destination_domain": {"type": int, "idx": True},
        "sender": {"type": str, "idx": True},
        "amount_sent": {"type": int},
        "amount_received": {"type": int}
    }
)

ReceiveEvent = LogEvent(
    event="Receive",
    params={
        "message_id": {"type": str, "idx": True},
        "source_domain": {"type": int, "idx": True},
        "recipient": {"type": str, "idx": True},
        "amount_received": {"type": int}
    }
)

# ------------------------------------------------------------------------------
# CONSTANTS
# ------------------------------------------------------------------------------

# Whole-supply cap, in integer token units
MAX_SUPPLY = 1_000_000_000

# Smallest amount a single mint() call will bother distributing
MINIMUM_MINT = 100

# Distribution shares are expressed in basis points
SHARE_DIVISOR = 10_000

# Sentinel used as the counterparty of mint and burn
ZERO_ADDRESS = "0" * 64

# ------------------------------------------------------------------------------
# STATE
# ------------------------------------------------------------------------------

balances = Hash(default_value=0)
metadata = Hash()

# address -> bool, exempts the address from the non-transferability rule
authorized = Hash(default_value=False)

# domain -> name of the token router deployed on that domain
peers = Hash(default_value="")

owner = Variable()

totalMinted = Variable()
totalBurned = Variable()

# Supply state, only meaningful on the mint domain
totalDistributed = Variable()
lastMintTimestamp = Variable()
vestingFactor = Variable()
distributionParams = Variable()

# Beneficiaries
staking = Variable()
escrow = Variable()
teamGnosis = Variable()

localDomain = Variable()
mintDomain = Variable()

# Local units per shared (cross-chain) unit
conversionRate = Variable()

# Name of the token router on this chain, the only caller allowed to credit
routerName = Variable()

# Mailbox contract for cross-chain messaging
mailboxName = Variable()

@construct
def seed(domain: int, mint_domain: int, router: str, mailbox_contract: str,
         conversion_rate: int):
    """
    domain: Local domain ID for this chain
    mint_domain: The only domain on which new supply may be minted
    router: Name (or address) of the TokenRouter on this chain
    conversion_rate: Local units per shared unit carried in bridge messages
    """
    assert conversion_rate > 0, "ExpectedNonZero: conversion_rate"

    owner.set(ctx.caller)
    localDomain.set(domain)
    mintDomain.set(mint_domain)
    routerName.set(router)
    mailboxName.set(mailbox_contract)
    conversionRate.set(conversion_rate)

    metadata["name"] = "Vested Interchain Token"
    metadata["symbol"] = "VIT"
    metadata["operator"] = ctx.caller

    totalMinted.set(0)
    totalBurned.set(0)
    totalDistributed.set(0)
    lastMintTimestamp.set(None)
    vestingFactor.set(None)
    distributionParams.set({"staking": 0, "escrow": 0, "treasury": SHARE_DIVISOR})

# ------------------------------------------------------------------------------
# MODIFIERS / HELPERS
# ------------------------------------------------------------------------------

def only_owner():
    if ctx.caller != owner.get():
        raise Exception("Only the owner can call this function.")

def only_router():
    if ctx.caller != routerName.get():
        raise Exception("OnlyRouter: only the configured router can call this function.")

def require_address(account: str):
    assert account is not None and account != "" and account != ZERO_ADDRESS, \
        "InvalidAddress: {}".format(account)

def is_sentinel(account: str):
    return account == ZERO_ADDRESS

def holder_transfer(sender: str, recipient: str, amount: int):
    """Account-to-account move. The sentinel is reserved for mint and burn."""
    if is_sentinel(sender) or is_sentinel(recipient):
        raise Exception("NonTransferrable: {} -> {}".format(sender, recipient))
    update(sender, recipient, amount)

def update(sender: str, recipient: str, amount: int):
    """
    Every balance mutation funnels through here. A zero-address sender is a mint,
    a zero-address recipient is a burn; both skip the transfer guard.
    """
    if not is_sentinel(sender) and not is_sentinel(recipient):
        if not authorized[sender] and not authorized[recipient]:
            raise Exception("NonTransferrable: {} -> {}".format(sender, recipient))

    if is_sentinel(sender):
        totalMinted.set(totalMinted.get() + amount)
    else:
        assert balances[sender] >= amount, "Not enough coins to send!"
        balances[sender] -= amount

    if is_sentinel(recipient):
        totalBurned.set(totalBurned.get() + amount)
    else:
        balances[recipient] += amount

    if is_sentinel(sender):
        MintEvent({"to": recipient, "amount": amount})
    elif is_sentinel(recipient):
        BurnEvent({"from": sender, "amount": amount})
    else:
        TransferEvent({"from": sender, "to": recipient, "amount": amount})

def elapsed_seconds():
    last = lastMintTimestamp.get()
    if last is None:
        return 0
    seconds = (now - last).seconds
    if seconds < 0:
        return 0
    return seconds

def vested_amount():
    factor = vestingFactor.get()
    if factor is None:
        return 0

    amount = elapsed_seconds() * MAX_SUPPLY * factor["numerator"] // factor["denominator"]
    remaining = MAX_SUPPLY - totalDistributed.get()
    if amount > remaining:
        amount = remaining
    return amount

def mintable(amount: int):
    """True when amount clears MINIMUM_MINT or exactly completes the cap."""
    if amount == 0:
        return False
    if amount < MINIMUM_MINT and totalDistributed.get() + amount != MAX_SUPPLY:
        return False
    return True

def split(amount: int, params: dict):
    """Basis-point shares; the treasury takes whatever rounding leaves over."""
    staking_amount = amount * params["staking"] // SHARE_DIVISOR
    escrow_amount = amount * params["escrow"] // SHARE_DIVISOR
    return {
        "staking": staking_amount,
        "escrow": escrow_amount,
        "treasury": amount - staking_amount - escrow_amount
    }

def pay_beneficiary(account: str, role: str, amount: int, notify: bool):
    if amount == 0:
        return
    assert account is not None, "MissingParameter: {} beneficiary".format(role)

    update(ZERO_ADDRESS, account, amount)

    if notify:
        beneficiary = importlib.import_module(account)
        beneficiary.notifyDistribution(amount=amount)

def distribute(amount: int):
    params = distributionParams.get()
    shares = split(amount, params)

    pay_beneficiary(staking.get(), "staking", shares["staking"], True)
    pay_beneficiary(escrow.get(), "escrow", shares["escrow"], True)
    pay_beneficiary(teamGnosis.get(), "treasury", shares["treasury"], False)

    totalDistributed.set(totalDistributed.get() + amount)

    DistributionEvent({
        "amount": amount,
        "staking_amount": shares["staking"],
        "escrow_amount": shares["escrow"],
        "treasury_amount": shares["treasury"],
        "total_distributed": totalDistributed.get()
    })

def remove_dust(amount: int):
    """Rounds down to a whole number of shared units."""
    rate = conversionRate.get()
    return amount // rate * rate

# ------------------------------------------------------------------------------
# ERC20-LIKE METHODS
# ------------------------------------------------------------------------------

@export
def balanceOf(account: str):
    return balances[account]

@export
def circulatingSupply():
    """Supply held on this chain: everything minted or bridged in, minus burns."""
    return totalMinted.get() - totalBurned.get()

@export
def transfer(amount: int, to: str):
    assert amount > 0, "Cannot send negative balances!"
    holder_transfer(ctx.caller, to, amount)

@export
def allowance(owner: str, spender: str):
    return balances[owner, spender]

@export
def approve(amount: int, to: str):
    assert amount >= 0, "Cannot approve negative balances!"

    balances[ctx.caller, to] = amount
    ApproveEvent({"from": ctx.caller, "to": to, "amount": amount})
    return balances[ctx.caller, to]

@export
def transfer_from(amount: int, to: str, main_account: str):
    assert amount > 0, "Cannot send negative balances!"

    sender = ctx.caller

    assert balances[main_account, sender] >= amount, "Not enough coins approved to send! You have {} and are trying to spend {}"\
        .format(balances[main_account, sender], amount)

    balances[main_account, sender] -= amount
    holder_transfer(main_account, to, amount)

@export
def change_metadata(key: str, value: Any):
    only_owner()
    metadata[key] = value

@export
def getMetadata(key: str):
    return metadata[key]

# ------------------------------------------------------------------------------
# VESTING & MINT
# ------------------------------------------------------------------------------

@export
def mint():
    """
    Mints whatever has vested since the last mint and distributes it. Calls that
    would mint nothing, or less than MINIMUM_MINT without completing the cap,
    succeed without changing state so periodic keepers never revert.
    """
    assert localDomain.get() == mintDomain.get(), \
        "WrongChain: minting is only allowed on domain {}".format(mintDomain.get())
    assert vestingFactor.get() is not None, "MissingParameter: vesting factor"

    amount = vested_amount()
    if not mintable(amount):
        return 0

    lastMintTimestamp.set(now)
    distribute(amount)
    return amount

@export
def getMintAmount():
    return vested_amount()

@export
def canDistribute():
    if localDomain.get() != mintDomain.get() or vestingFactor.get() is None:
        return False
    return mintable(vested_amount())

@export
def getVestingFactor():
    return vestingFactor.get()

@export
def getLastMintTimestamp():
    return lastMintTimestamp.get()

@export
def getTotalDistributed():
    return totalDistributed.get()

@export
def setVestingFactor(numerator: int, denominator: int):
    """
    The first configuration starts the vesting clock. Later changes keep the clock,
    so the new rate applies to the interval that has not been minted yet.
    """
    only_owner()
    assert numerator > 0 and denominator > 0, "ExpectedNonZero: vesting factor"
    assert numerator <= denominator, "InvalidParam: numerator exceeds denominator"

    if lastMintTimestamp.get() is None:
        lastMintTimestamp.set(now)

    vestingFactor.set({"numerator": numerator, "denominator": denominator})
    VestingFactorEvent({"numerator": numerator, "denominator": denominator})

# ------------------------------------------------------------------------------
# DISTRIBUTION
# ------------------------------------------------------------------------------

@export
def getDistributionParameters():
    return distributionParams.get()

@export
def previewDistribution(amount: int):
    assert amount >= 0, "Cannot distribute negative amounts!"
    return split(amount, distributionParams.get())

@export
def setDistributionParams(staking_share: int, escrow_share: int, treasury_share: int):
    only_owner()
    assert staking_share >= 0 and escrow_share >= 0 and treasury_share >= 0, \
        "InvalidTotalShare: shares must not be negative"
    assert staking_share + escrow_share + treasury_share == SHARE_DIVISOR, \
        "InvalidTotalShare: shares must sum to {}".format(SHARE_DIVISOR)

    distributionParams.set({
        "staking": staking_share,
        "escrow": escrow_share,
        "treasury": treasury_share
    })
    DistributionParamsEvent({
        "staking": staking_share,
        "escrow": escrow_share,
        "treasury": treasury_share
    })

@export
def setStaking(account: str):
    only_owner()
    require_address(account)
    staking.set(account)
    BeneficiaryEvent({"role": "staking", "account": account})

@export
def setEscrow(account: str):
    only_owner()
    require_address(account)
    escrow.set(account)
    BeneficiaryEvent({"role": "escrow", "account": account})

@export
def setTeamGnosis(account: str):
    only_owner()
    require_address(account)
    teamGnosis.set(account)
    BeneficiaryEvent({"role": "treasury", "account": account})

@export
def getBeneficiaries():
    return {
        "staking": staking.get(),
        "escrow": escrow.get(),
        "treasury": teamGnosis.get()
    }

# ------------------------------------------------------------------------------
# AUTHORIZATION
# ------------------------------------------------------------------------------

@export
def authorizeContract(account: str, is_authorized: bool):
    only_owner()
    require_address(account)
    authorized[account] = is_authorized
    AuthorizedEvent({"account": account, "authorized": is_authorized})

@export
def isAuthorized(account: str):
    return authorized[account]

@export
def transferOwnership(new_owner: str):
    only_owner()
    require_address(new_owner)
    previous = owner.get()
    owner.set(new_owner)
    OwnershipEvent({"previous_owner": previous, "new_owner": new_owner})

# ------------------------------------------------------------------------------
# CROSS-CHAIN FUNCTIONS
# ------------------------------------------------------------------------------

@export
def setPeer(domain: int, router: str):
    """
    Registers the TokenRouter on 'domain' that receives this token's messages.
    """
    only_owner()
    require_address(router)
    peers[domain] = router
    PeerEvent({"domain": domain, "router": router})

@export
def getPeer(domain: int):
    return peers[domain]

@export
def quoteSend(destination_domain: int, amount: int):
    mailbox = importlib.import_module(mailboxName.get())
    amount_sent = remove_dust(amount)
    return {
        "fee": mailbox.quoteDispatch(destination_domain=destination_domain),
        "amount_sent": amount_sent,
        "amount_received": amount_sent
    }

@export
def send(destination_domain: int, recipient: str, amount: int, min_amount: int,
         fee: int, refund_address: str, compose_msg: str):
    """
    Burns the caller's tokens locally and dispatches a message to the router on
    the destination domain, which credits the same address there. Only
    self-transfers are allowed and no follow-on execution may be attached.
    """
    assert compose_msg is None or compose_msg == "", "CannotCompose: compose payloads are not supported"

    sender = ctx.caller
    if recipient != sender:
        raise Exception("NonTransferrable: {} -> {}".format(sender, recipient))

    remote_router = peers[destination_domain]
    assert remote_router != "", "NoPeer: no router registered for domain {}".format(destination_domain)

    assert amount > 0, "ExpectedNonZero: amount"
    amount_sent = remove_dust(amount)
    assert amount_sent > 0, "ExpectedNonZero: amount is below one shared unit"
    assert amount_sent >= min_amount, \
        "SlippageExceeded: {} is below the minimum of {}".format(amount_sent, min_amount)

    # 1. Debit locally
    update(sender, ZERO_ADDRESS, amount_sent)

    # 2. Encode as recipient|amountSD|sender|composeMsg
    amount_sd = amount_sent // conversionRate.get()
    message_body = "{}|{}|{}|".format(recipient, amount_sd, sender)

    # 3. Hand over to the transport
    mailbox = importlib.import_module(mailboxName.get())
    msg_id = mailbox.dispatch(
        destination_domain=destination_domain,
        recipient_address=remote_router,
        message_body=message_body,
        fee=fee,
        refund_address=refund_address
    )

    SendEvent({
        "message_id": msg_id,
        "destination_domain": destination_domain,
        "sender": sender,
        "amount_sent": amount_sent,
        "amount_received": amount_sent
    })

    return {
        "message_id": msg_id,
        "destination_domain": destination_domain,
        "recipient": recipient,
        "amount_sent": amount_sent,
        "amount_received": amount_sent,
        "fee": fee
    }

@export
def receive(message_id: str, source_domain: int, recipient: str, amount_sd: int,
            compose_msg: str):
    """
    Called by the router on this chain after it verified and decoded the
    cross-chain message. Credits the recipient as a mint-like mutation.
    """
    only_router()
    assert compose_msg is None or compose_msg == "", "CannotCompose: compose payloads are not supported"
    require_address(recipient)
    assert amount_sd >= 0, "Cannot credit negative balances!"

    amount_received = amount_sd * conversionRate.get()
    if amount_received > 0:
        update(ZERO_ADDRESS, recipient, amount_received)

    ReceiveEvent({
        "message_id": message_id,
        "source_domain": source_domain,
        "recipient": recipient,
        "amount_received": amount_received
    })

    return {
        "message_id": message_id,
        "source_domain": source_domain,
        "recipient": recipient,
        "amount_received": amount_received
    }
