import os
import sys
import django
import random
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'dog_transport_marketplace.settings')
django.setup()

from transport import services
from transport.models import User, Trip
from transport.payments import PaymentAuthorization

fake = Faker()

BREEDS = ['Labrador', 'Beagle', 'German Shepherd', 'Poodle', 'Dachshund', 'Border Collie', 'Mixed']


class SeedPaymentGateway:
    """Offline stand-in for the payment processor so seeded trips can be awarded."""

    def authorize(self, amount_cents, destination_account, application_fee_cents, **kwargs):
        intent_id = f"pi_seed_{fake.unique.bothify('????????####')}"
        return PaymentAuthorization(intent_id, f'{intent_id}_secret_seed')

    def capture(self, intent_id):
        return {'id': intent_id, 'status': 'succeeded'}

    def cancel(self, intent_id):
        return {'id': intent_id, 'status': 'canceled'}


def create_users(num_owners=10, num_transporters=5):
    print(f"Creating {num_owners} owners and {num_transporters} transporters...")

    owners = []
    transporters = []

    for _ in range(num_owners):
        email = fake.unique.email()
        user = User.objects.create_user(
            username=email,
            email=email,
            password='password123',
            first_name=fake.first_name(),
            last_name=fake.last_name(),
            role=User.ROLE_OWNER,
        )
        owners.append(user)

    for _ in range(num_transporters):
        email = fake.unique.email()
        # Some transporters have not finished payout onboarding yet
        payout = f"acct_{fake.bothify('################')}" if random.random() < 0.8 else None
        user = User.objects.create_user(
            username=email,
            email=email,
            password='password123',
            first_name=fake.first_name(),
            last_name=fake.last_name(),
            role=User.ROLE_TRANSPORTER,
            payout_account_id=payout,
        )
        transporters.append(user)

    print(f"Created {len(owners)} owners and {len(transporters)} transporters.")
    return owners, transporters


def create_trips(owners, trips_per_owner=3):
    print("Creating trips...")
    trips = []

    for owner in owners:
        for _ in range(random.randint(1, trips_per_owner)):
            trip = services.create_trip(
                owner,
                pickup_location=f"{fake.city()}, {fake.state_abbr()}",
                dropoff_location=f"{fake.city()}, {fake.state_abbr()}",
                dog_info={
                    'name': fake.first_name(),
                    'breed': random.choice(BREEDS),
                    'count': random.randint(1, 3),
                    'weight_lbs': random.randint(5, 110),
                },
            )
            trips.append(trip)

    print(f"Created {len(trips)} trips.")
    return trips


def create_bids(trips, transporters):
    print("Creating bids...")
    bids = []

    for trip in trips:
        for transporter in random.sample(transporters, random.randint(0, len(transporters))):
            bid = services.place_bid(
                trip.id,
                transporter,
                amount_cents=random.randint(80, 900) * 100,
                eta_hours=random.randint(4, 72),
                note=fake.sentence(),
            )
            bids.append(bid)

    print(f"Created {len(bids)} bids.")
    return bids


def award_and_deliver(trips):
    print("Awarding and delivering trips...")
    gateway = SeedPaymentGateway()
    award = services.AwardCoordinator(gateway)
    delivery = services.DeliveryCoordinator(gateway)
    awarded = 0
    delivered = 0

    for trip in trips:
        candidates = [bid for bid in trip.bids.all() if bid.transporter.has_payout_account()]
        if not candidates or random.random() < 0.4:
            continue

        bid = random.choice(candidates)
        award.accept_bid(bid.id, trip.owner)
        awarded += 1

        services.send_message(bid.id, trip.owner, fake.sentence())
        services.send_message(bid.id, bid.transporter, fake.sentence())

        if random.random() < 0.6:
            delivery.mark_delivered(trip.id, trip.owner)
            delivered += 1

    print(f"Awarded {awarded} trips, delivered {delivered}.")


def create_reviews():
    print("Creating reviews...")
    count = 0

    for trip in Trip.objects.filter(status=Trip.STATUS_DELIVERED).select_related('owner', 'transporter'):
        services.submit_review(
            trip.id, trip.owner, services.DIRECTION_OWNER_TO_TRANSPORTER,
            rating=random.randint(3, 5), comment=fake.paragraph(nb_sentences=2),
        )
        count += 1
        if random.random() < 0.7:
            services.submit_review(
                trip.id, trip.transporter, services.DIRECTION_TRANSPORTER_TO_OWNER,
                rating=random.randint(3, 5), comment=fake.sentence(),
            )
            count += 1

    print(f"Created {count} reviews.")


def main():
    print("Starting database population...")

    owners, transporters = create_users(num_owners=15, num_transporters=8)

    trips = create_trips(owners)

    create_bids(trips, transporters)

    award_and_deliver(trips)

    create_reviews()

    print("Database population completed successfully!")


if __name__ == '__main__':
    main()
