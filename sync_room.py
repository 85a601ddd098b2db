from app import create_app

if __name__ == "__main__":
    app = create_app({"SEED_ON_STARTUP": False})
    with app.app_context():
        print("Syncing room occupancy with allocated students...")

        changed = app.extensions["hostel_service"].sync_room_occupancy()
        for room in changed:
            print(f" - {room.number} ({room.capacity}): {room.occupancy} occupied, {room.status}")

        print(f"Sync complete, {len(changed)} room(s) updated.")
