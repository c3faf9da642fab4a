from cumulus_ecs_task.cli.main import main

if __name__ == "__main__":
    main()
