from topic_trainer.cli.main import main

main()
