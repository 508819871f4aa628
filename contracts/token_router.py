RouterMessageEvent = LogEvent(
    event="RouterMessage",
    params={
        "message_id": {"type": str, "idx": True},
        "sender_domain": {"type": int, "idx": True},
        "sender_address": {"type": str}
    }
)

# We store a mapping: domainID -> nameOfTokenOnThatDomain
# For example: 1 -> 'con_vested_token'
tokensByDomain = Hash(default_value="")

# The local domain for this router's chain
localDomain = Variable()

owner = Variable()

mailbox_contract = Variable()

@construct
def seed(domain: int, mailbox_contract_name: str):
    """
    domain: The local domain ID for this router's chain
    """
    localDomain.set(domain)
    owner.set(ctx.caller)
    mailbox_contract.set(mailbox_contract_name)

def only_owner():
    assert ctx.caller == owner.get(), "Only the contract owner can call this method."

def decode_body(body: str):
    """
    Format written by the token's send: recipient|amountSD|sender|composeMsg
    The compose payload is the tail and may itself contain separators.
    """
    parts = body.split("|", 3)
    assert len(parts) == 4, "Invalid message format."
    return {
        "recipient": parts[0],
        "amount_sd": int(parts[1]),
        "sender": parts[2],
        "compose_msg": parts[3]
    }

@export
def setTokenForDomain(domain_id: int, token_name: str):
    """
    Store the name (or address) of the token contract on 'domain_id'. Messages
    from 'domain_id' are only accepted when that token dispatched them.
    """
    only_owner()
    tokensByDomain[domain_id] = token_name

@export
def getTokenForDomain(domain_id: int):
    return tokensByDomain[domain_id]

@export
def process(message: dict, message_id: str):
    """
    Called by a relayer when a message addressed to this router arrives.

    The mailbox rejects forged ids and replays, then we check that the origin
    token is the registered peer and forward the decoded transfer to the local
    token's 'receive'.
    """
    mailbox = importlib.import_module(mailbox_contract.get())

    # Mark the message as delivered in mailbox
    mailbox.process(message=message, message_id=message_id)

    origin_domain = message["originDomain"]
    expected_sender = tokensByDomain[origin_domain]
    assert expected_sender and message["sender"] == expected_sender, \
        "Router: unknown sender {} on domain {}".format(message["sender"], origin_domain)

    body = decode_body(message["body"])

    RouterMessageEvent({
        "message_id": message_id,
        "sender_domain": origin_domain,
        "sender_address": body["sender"]
    })

    local_token_name = tokensByDomain[localDomain.get()]
    assert local_token_name, "No token configured for this domain."

    local_token = importlib.import_module(local_token_name)

    return local_token.receive(
        message_id=message_id,
        source_domain=origin_domain,
        recipient=body["recipient"],
        amount_sd=body["amount_sd"],
        compose_msg=body["compose_msg"]
    )
