import os
import unittest
from contracting.client import ContractingClient
from contracting.stdlib.bridge.time import Datetime, Timedelta

CONTRACTS_DIR = os.path.dirname(os.path.abspath(__file__))

MINT_DOMAIN = 1
REMOTE_DOMAIN = 2


def read_contract(filename):
    with open(os.path.join(CONTRACTS_DIR, filename)) as f:
        return f.read()


class InterchainHarness(unittest.TestCase):
    """
    Two chains simulated in one ContractingClient: domain 1 (the mint domain)
    and domain 2, each with its own mailbox, router and token.
    """

    conversion_rate = 1

    def setUp(self):
        # 1. Initialize a fresh ContractingClient
        self.c = ContractingClient()
        self.c.flush()

        self.start = Datetime(year=2025, month=1, day=1)
        self.block = 0

        # 2. Fee currency ('sys' is the manager)
        self.c.submit(read_contract('currency.py'), name='currency', constructor_args={'vk': 'sys'}, signer='sys')
        self.currency = self.c.get_contract('currency')

        # 3. One mailbox per domain
        mailbox = read_contract('interchain_mailbox.py')
        self.c.submit(mailbox, name='con_mailbox_a', constructor_args={'domain': MINT_DOMAIN}, signer='sys')
        self.c.submit(mailbox, name='con_mailbox_b', constructor_args={'domain': REMOTE_DOMAIN}, signer='sys')
        self.mailbox_a = self.c.get_contract('con_mailbox_a')
        self.mailbox_b = self.c.get_contract('con_mailbox_b')

        # 4. One router per domain
        router = read_contract('token_router.py')
        self.c.submit(router, name='con_router_a',
                      constructor_args={'domain': MINT_DOMAIN, 'mailbox_contract_name': 'con_mailbox_a'}, signer='sys')
        self.c.submit(router, name='con_router_b',
                      constructor_args={'domain': REMOTE_DOMAIN, 'mailbox_contract_name': 'con_mailbox_b'}, signer='sys')
        self.router_a = self.c.get_contract('con_router_a')
        self.router_b = self.c.get_contract('con_router_b')

        # 5. One token per domain, only domain 1 mints
        token = read_contract('vested_token.py')
        self.c.submit(token, name='con_token_a', constructor_args={
            'domain': MINT_DOMAIN,
            'mint_domain': MINT_DOMAIN,
            'router': 'con_router_a',
            'mailbox_contract': 'con_mailbox_a',
            'conversion_rate': self.conversion_rate
        }, signer='sys')
        self.c.submit(token, name='con_token_b', constructor_args={
            'domain': REMOTE_DOMAIN,
            'mint_domain': MINT_DOMAIN,
            'router': 'con_router_b',
            'mailbox_contract': 'con_mailbox_b',
            'conversion_rate': self.conversion_rate
        }, signer='sys')
        self.token_a = self.c.get_contract('con_token_a')
        self.token_b = self.c.get_contract('con_token_b')

        # 6. Wire peers
        self.token_a.setPeer(domain=REMOTE_DOMAIN, router='con_router_b', signer='sys')
        self.token_b.setPeer(domain=MINT_DOMAIN, router='con_router_a', signer='sys')
        for r in (self.router_a, self.router_b):
            r.setTokenForDomain(domain_id=MINT_DOMAIN, token_name='con_token_a', signer='sys')
            r.setTokenForDomain(domain_id=REMOTE_DOMAIN, token_name='con_token_b', signer='sys')

        # 7. Vest 1000 units to alice on the mint domain
        self.token_a.setTeamGnosis(account='alice', signer='sys')
        self.token_a.setVestingFactor(numerator=1, denominator=10_000_000, signer='sys',
                                      environment={'now': self.start})
        self.token_a.mint(signer='keeper', environment={'now': self.start + Timedelta(seconds=10)})
        self.assertEqual(self.token_a.balanceOf(account='alice'), 1000)

    def send(self, token, destination_domain, amount, signer='alice', recipient=None,
             min_amount=None, fee=0, compose_msg=''):
        return token.send(
            destination_domain=destination_domain,
            recipient=recipient if recipient is not None else signer,
            amount=amount,
            min_amount=min_amount if min_amount is not None else 0,
            fee=fee,
            refund_address=signer,
            compose_msg=compose_msg,
            signer=signer
        )

    def relay(self, source_mailbox, destination_router, message_id):
        """
        Plays the relayer: reads the dispatched message on the source chain and
        hands it to the router on the destination chain.
        """
        self.block += 1
        message = source_mailbox.getMessage(message_id=message_id)
        return destination_router.process(
            message=message,
            message_id=message_id,
            signer='relayer',
            environment={'block_num': self.block}
        )


class TestInterchain(InterchainHarness):

    def test_send_debits_source_and_relay_credits_destination(self):
        receipt = self.send(self.token_a, REMOTE_DOMAIN, 400)

        self.assertEqual(receipt['amount_sent'], 400)
        self.assertEqual(receipt['amount_received'], 400)
        self.assertEqual(receipt['destination_domain'], REMOTE_DOMAIN)
        self.assertEqual(receipt['message_id'], self.mailbox_a.latestDispatchedId.get())

        self.assertEqual(self.token_a.balanceOf(account='alice'), 600)
        self.assertEqual(self.token_a.circulatingSupply(), 600)
        self.assertEqual(self.token_b.balanceOf(account='alice'), 0)

        credit = self.relay(self.mailbox_a, self.router_b, receipt['message_id'])
        self.assertEqual(credit['recipient'], 'alice')
        self.assertEqual(credit['amount_received'], 400)
        self.assertEqual(credit['source_domain'], MINT_DOMAIN)

        self.assertEqual(self.token_b.balanceOf(account='alice'), 400)
        self.assertEqual(self.token_b.circulatingSupply(), 400)
        self.assertTrue(self.mailbox_b.delivered(message_id=receipt['message_id']))
        self.assertEqual(self.mailbox_b.processor(message_id=receipt['message_id']), 'con_router_b')

    def test_round_trip_conserves_supply(self):
        out = self.send(self.token_a, REMOTE_DOMAIN, 700)
        self.relay(self.mailbox_a, self.router_b, out['message_id'])

        back = self.send(self.token_b, MINT_DOMAIN, 250)
        self.relay(self.mailbox_b, self.router_a, back['message_id'])

        self.assertEqual(self.token_a.balanceOf(account='alice'), 550)
        self.assertEqual(self.token_b.balanceOf(account='alice'), 450)

        total = self.token_a.circulatingSupply() + self.token_b.circulatingSupply()
        self.assertEqual(total, self.token_a.getTotalDistributed())

    def test_router_token_registry(self):
        self.assertEqual(self.router_b.getTokenForDomain(domain_id=MINT_DOMAIN), 'con_token_a')
        self.assertEqual(self.router_b.getTokenForDomain(domain_id=99), '')

        with self.assertRaises(Exception) as cm:
            self.router_b.setTokenForDomain(domain_id=99, token_name='con_rogue', signer='mallory')
        self.assertIn("Only the contract owner can call this method", str(cm.exception))
        self.assertEqual(self.router_b.getTokenForDomain(domain_id=99), '')

    def test_out_of_order_delivery(self):
        first = self.send(self.token_a, REMOTE_DOMAIN, 100)
        second = self.send(self.token_a, REMOTE_DOMAIN, 200)

        self.relay(self.mailbox_a, self.router_b, second['message_id'])
        self.relay(self.mailbox_a, self.router_b, first['message_id'])

        self.assertEqual(self.token_b.balanceOf(account='alice'), 300)

    def test_replayed_message_is_rejected(self):
        receipt = self.send(self.token_a, REMOTE_DOMAIN, 100)
        self.relay(self.mailbox_a, self.router_b, receipt['message_id'])

        with self.assertRaises(Exception) as cm:
            self.relay(self.mailbox_a, self.router_b, receipt['message_id'])
        self.assertIn("Mailbox: already delivered", str(cm.exception))
        self.assertEqual(self.token_b.balanceOf(account='alice'), 100)

    def test_send_to_another_address_fails(self):
        self.token_a.authorizeContract(account='alice', is_authorized=True, signer='sys')
        self.token_a.authorizeContract(account='bob', is_authorized=True, signer='sys')

        with self.assertRaises(Exception) as cm:
            self.send(self.token_a, REMOTE_DOMAIN, 100, recipient='bob')
        self.assertIn("NonTransferrable", str(cm.exception))
        self.assertEqual(self.token_a.balanceOf(account='alice'), 1000)

    def test_send_with_compose_payload_fails(self):
        with self.assertRaises(Exception) as cm:
            self.send(self.token_a, REMOTE_DOMAIN, 100, compose_msg='deadbeef')
        self.assertIn("CannotCompose", str(cm.exception))
        self.assertEqual(self.token_a.balanceOf(account='alice'), 1000)

    def test_receive_with_compose_payload_fails(self):
        with self.assertRaises(Exception) as cm:
            self.token_b.receive(
                message_id='abc',
                source_domain=MINT_DOMAIN,
                recipient='alice',
                amount_sd=100,
                compose_msg='deadbeef',
                signer='con_router_b'
            )
        self.assertIn("CannotCompose", str(cm.exception))
        self.assertEqual(self.token_b.balanceOf(account='alice'), 0)

    def test_only_router_can_credit(self):
        with self.assertRaises(Exception) as cm:
            self.token_b.receive(
                message_id='abc',
                source_domain=MINT_DOMAIN,
                recipient='mallory',
                amount_sd=100,
                compose_msg='',
                signer='mallory'
            )
        self.assertIn("OnlyRouter", str(cm.exception))

    def test_router_rejects_unknown_sender(self):
        # mallory dispatches a forged transfer straight through the mailbox
        msg_id = self.mailbox_a.dispatch(
            destination_domain=REMOTE_DOMAIN,
            recipient_address='con_router_b',
            message_body='mallory|1000000|mallory|',
            fee=0,
            refund_address='mallory',
            signer='mallory'
        )

        with self.assertRaises(Exception) as cm:
            self.relay(self.mailbox_a, self.router_b, msg_id)
        self.assertIn("Router: unknown sender", str(cm.exception))
        self.assertEqual(self.token_b.balanceOf(account='mallory'), 0)
        self.assertFalse(self.mailbox_b.delivered(message_id=msg_id))

    def test_send_to_unknown_domain_fails(self):
        with self.assertRaises(Exception) as cm:
            self.send(self.token_a, 99, 100)
        self.assertIn("NoPeer", str(cm.exception))

    def test_send_more_than_balance_fails(self):
        with self.assertRaises(Exception) as cm:
            self.send(self.token_a, REMOTE_DOMAIN, 1001)
        self.assertIn("Not enough coins to send!", str(cm.exception))

    def test_sending_home_does_not_mint(self):
        out = self.send(self.token_a, REMOTE_DOMAIN, 1000)
        self.relay(self.mailbox_a, self.router_b, out['message_id'])

        # Supply on the remote chain is bridged supply, not vested supply
        self.assertEqual(self.token_b.getTotalDistributed(), 0)
        self.assertEqual(self.token_a.getTotalDistributed(), 1000)
        self.assertEqual(self.token_a.circulatingSupply(), 0)

    def test_dispatch_fee_is_charged_and_excess_refunded(self):
        self.mailbox_a.setDispatchFee(amount=10, signer='sys')
        self.currency.transfer(amount=100, to='alice', signer='sys')
        self.currency.approve(amount=25, to='con_mailbox_a', signer='alice')
        owner_before = self.currency.balance_of(account='sys')

        quote = self.token_a.quoteSend(destination_domain=REMOTE_DOMAIN, amount=100)
        self.assertEqual(quote['fee'], 10)

        receipt = self.send(self.token_a, REMOTE_DOMAIN, 100, fee=25)
        self.assertEqual(receipt['fee'], 25)

        self.assertEqual(self.currency.balance_of(account='alice'), 90)
        self.assertEqual(self.currency.balance_of(account='sys'), owner_before + 10)
        self.assertEqual(self.currency.balance_of(account='con_mailbox_a'), 0)

    def test_insufficient_fee_fails(self):
        self.mailbox_a.setDispatchFee(amount=10, signer='sys')

        with self.assertRaises(Exception) as cm:
            self.send(self.token_a, REMOTE_DOMAIN, 100, fee=5)
        self.assertIn("Mailbox: insufficient fee", str(cm.exception))
        self.assertEqual(self.token_a.balanceOf(account='alice'), 1000)


class TestDustRemoval(InterchainHarness):

    conversion_rate = 100

    def test_dust_is_not_debited(self):
        receipt = self.send(self.token_a, REMOTE_DOMAIN, 450)
        self.assertEqual(receipt['amount_sent'], 400)

        self.assertEqual(self.token_a.balanceOf(account='alice'), 600)

        self.relay(self.mailbox_a, self.router_b, receipt['message_id'])
        self.assertEqual(self.token_b.balanceOf(account='alice'), 400)

    def test_round_trip_conserves_supply(self):
        out = self.send(self.token_a, REMOTE_DOMAIN, 450)
        self.relay(self.mailbox_a, self.router_b, out['message_id'])

        back = self.send(self.token_b, MINT_DOMAIN, 250)
        self.assertEqual(back['amount_sent'], 200)
        self.relay(self.mailbox_b, self.router_a, back['message_id'])

        self.assertEqual(self.token_a.balanceOf(account='alice'), 800)
        self.assertEqual(self.token_b.balanceOf(account='alice'), 200)

        total = self.token_a.circulatingSupply() + self.token_b.circulatingSupply()
        self.assertEqual(total, self.token_a.getTotalDistributed())

    def test_message_carries_shared_units(self):
        receipt = self.send(self.token_a, REMOTE_DOMAIN, 300)
        message = self.mailbox_a.getMessage(message_id=receipt['message_id'])
        self.assertEqual(message['body'], 'alice|3|alice|')

    def test_slippage_limit(self):
        with self.assertRaises(Exception) as cm:
            self.send(self.token_a, REMOTE_DOMAIN, 450, min_amount=450)
        self.assertIn("SlippageExceeded", str(cm.exception))

    def test_amount_below_one_shared_unit_fails(self):
        with self.assertRaises(Exception) as cm:
            self.send(self.token_a, REMOTE_DOMAIN, 50)
        self.assertIn("ExpectedNonZero", str(cm.exception))


if __name__ == '__main__':
    unittest.main()
