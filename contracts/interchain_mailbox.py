import currency  # Dispatch fees are charged in 'currency'

################################################################################
# EVENTS
################################################################################

DispatchEvent = LogEvent(
    event="Dispatch",
    params={
        "sender": {"type": str},
        "origin_domain": {"type": int, "idx": True},
        "destination_domain": {"type": int, "idx": True},
        "recipient": {"type": str},
        "message_id": {"type": str, "idx": True},
        "nonce": {"type": int}
    }
)

ProcessEvent = LogEvent(
    event="Process",
    params={
        "message_id": {"type": str, "idx": True},
        "processor": {"type": str, "idx": True},
        "block_number": {"type": int},
    }
)

DispatchFeeEvent = LogEvent(
    event="DispatchFeeSet",
    params={
        "amount": {"type": int}
    }
)

################################################################################
# STATE
################################################################################

VERSION = 1

localDomain = Variable()
nonce = Variable()
latestDispatchedId = Variable()
owner = Variable()

# Outbound messages kept for relayers: message ID -> message
messages = Hash(default_value=None)

# deliveries: Hash mapping message ID -> {processor: str, blockNumber: int}
deliveries = Hash(default_value={"processor": None, "blockNumber": 0})

dispatchFee = Variable()

################################################################################
# CONSTRUCTOR
################################################################################

@construct
def seed(domain: int):
    localDomain.set(domain)
    nonce.set(0)
    latestDispatchedId.set("")
    dispatchFee.set(0)

    owner.set(ctx.caller)

################################################################################
# INTERNAL HELPERS
################################################################################

def only_owner():
    if ctx.caller != owner.get():
        raise Exception("Only the contract owner can call this method.")

def build_message(origin_domain: int,
                  sender: str,
                  destination_domain: int,
                  recipient: str,
                  body: str):
    return {
        "version": VERSION,
        "nonce": nonce.get(),
        "originDomain": origin_domain,
        "sender": sender,
        "destinationDomain": destination_domain,
        "recipient": recipient,
        "body": body
    }

def generate_message_id(message: dict):
    """
    Pseudo-hash to generate unique message ID from message fields.
    """
    m_str = f"{message['version']}-{message['nonce']}-{message['originDomain']}-{message['sender']}-{message['destinationDomain']}-{message['recipient']}-{message['body']}"
    m_str = m_str.encode('utf-8').hex()
    return hashlib.sha256(m_str)

def collect_fee(fee: int, refund_address: str):
    """
    Pulls the offered fee from the signer, keeps the quoted part for the owner
    and refunds the rest.
    """
    quoted = dispatchFee.get()
    assert fee >= quoted, "Mailbox: insufficient fee, {} required".format(quoted)

    if fee == 0:
        return

    currency.transfer_from(amount=fee, to=ctx.this, main_account=ctx.signer)

    if quoted > 0:
        currency.transfer(amount=quoted, to=owner.get())

    excess = fee - quoted
    if excess > 0:
        assert refund_address, "Mailbox: refund address required"
        currency.transfer(amount=excess, to=refund_address)

################################################################################
# PUBLIC FUNCTIONS
################################################################################

@export
def dispatch(destination_domain: int,
             recipient_address: str,
             message_body: str,
             fee: int,
             refund_address: str):
    """
    Dispatch a message to another domain.
    """
    collect_fee(fee, refund_address)

    origin = localDomain.get()
    current_nonce = nonce.get()

    # Build + ID the message
    message = build_message(origin, ctx.caller, destination_domain, recipient_address, message_body)
    msg_id = generate_message_id(message)

    nonce.set(current_nonce + 1)
    latestDispatchedId.set(msg_id)
    messages[msg_id] = message

    DispatchEvent({
        "sender": ctx.caller,
        "origin_domain": origin,
        "destination_domain": destination_domain,
        "recipient": recipient_address,
        "message_id": msg_id,
        "nonce": current_nonce
    })

    return msg_id


@export
def process(message: dict,
            message_id: str):
    """
    Marks an inbound message as delivered. The caller must be the recipient the
    message was addressed to, and a message can only be processed once.
    """
    assert generate_message_id(message) == message_id, "Mailbox: invalid message id"
    assert message["destinationDomain"] == localDomain.get(), "Mailbox: wrong destination domain"
    assert message["recipient"] == ctx.caller, "Mailbox: caller is not the recipient"

    delivered_info = deliveries[message_id]
    if delivered_info["blockNumber"] > 0:
        raise Exception("Mailbox: already delivered")

    deliveries[message_id] = {
        "processor": ctx.caller,
        "blockNumber": block_num
    }

    ProcessEvent({
        "message_id": message_id,
        "processor": ctx.caller,
        "block_number": deliveries[message_id]["blockNumber"]
    })


@export
def getMessage(message_id: str):
    return messages[message_id]


@export
def delivered(message_id: str):
    """
    Check if the message has been marked as delivered.
    """
    return deliveries[message_id]["blockNumber"] > 0


@export
def processor(message_id: str):
    """
    Return the account that processed the given message.
    """
    return deliveries[message_id]["processor"]


@export
def processedAt(message_id: str):
    """
    Return the block number at which the message was processed.
    """
    return deliveries[message_id]["blockNumber"]

@export
def quoteDispatch(destination_domain: int):
    """
    Fee required to dispatch to 'destination_domain'. Flat across domains.
    """
    return dispatchFee.get()

@export
def getDispatchFee():
    """
    Get the dispatch fee.
    """
    return dispatchFee.get()

@export
def setDispatchFee(amount: int):
    """
    Set the dispatch fee. Owner only.
    """
    only_owner()
    assert amount >= 0, "Mailbox: fee must not be negative"
    dispatchFee.set(amount)
    DispatchFeeEvent({"amount": amount})
