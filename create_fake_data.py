import argparse
import random

from app import create_app
from services.seed_data import seed_initial_data

# ====== CONFIG ======
SEED = None  # set an int for a reproducible data set
# =====================


def main():
    parser = argparse.ArgumentParser(description="Fill the hostel store with sample data")
    parser.add_argument("--reset", action="store_true", help="clear every collection before seeding")
    parser.add_argument("--seed", type=int, default=SEED, help="random seed")
    args = parser.parse_args()

    app = create_app({"SEED_ON_STARTUP": False})
    with app.app_context():
        store = app.extensions["hostel_store"]

        if args.reset:
            print("Clearing existing hostel data...")
            store.clear_all()

        print("Generating rooms, students, tickets, menus and announcements...")
        if not seed_initial_data(store, rng=random.Random(args.seed)):
            print("Store already initialized, nothing to do (use --reset to start over).")
            return

        rooms = store.get_rooms()
        students = store.get_students()
        print(f"Created {len(rooms)} rooms.")
        print(f"Created {len(students)} students.")
        print(f"Created {len(store.get_maintenance_requests())} maintenance requests.")
        print(f"Created {len(store.get_complaints())} complaints.")
        print(f"Created {len(store.get_menus())} weekly menus.")
        print(f"Created {len(store.get_food_requests())} food requests.")
        print(f"Created {len(store.get_announcements())} announcements.")
        print("Done!")


if __name__ == "__main__":
    main()
