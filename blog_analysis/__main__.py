from blog_analysis.cli import main

main()
